from __future__ import annotations

import enum
import threading
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Optional, Tuple

from apscheduler.events import EVENT_JOB_MISSED, JobExecutionEvent
from apscheduler.job import Job
from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.schedulers.base import BaseScheduler
from apscheduler.triggers.date import DateTrigger
from loguru import logger

from cfsync.config import get_settings
from cfsync.exceptions import ConfigValidationError
from cfsync.scheduler.cron import build_trigger


class SchedulerState(enum.Enum):
    idle = "idle"
    armed = "armed"
    running = "running"


class SyncScheduler:
    """Owns the single pending timer for the student sync job.

    Every arm decision re-reads the sync configuration, cancels the previous
    timer and sets a one-shot timer for the next matching instant. The next
    instant is only computed after a run has finished, so runs never overlap
    and an occurrence missed during a long run is skipped rather than queued.
    A fire that APScheduler drops as missed (later than the misfire grace
    time) also re-arms for the next instant.
    """

    JOB_ID = "student_sync"

    def __init__(
        self,
        run_sync: Callable[[], Any],
        load_config: Callable[[], Tuple[str, bool]],
        scheduler: Optional[BaseScheduler] = None,
        timezone: Optional[str] = None,
    ):
        settings = get_settings()
        self._run_sync = run_sync
        self._load_config = load_config
        self._scheduler = scheduler or BackgroundScheduler()
        self._timezone = timezone if timezone is not None else settings.scheduler_timezone
        self._misfire_grace = settings.sync_misfire_grace_seconds

        self._lock = threading.RLock()
        self._state = SchedulerState.idle
        self._job: Optional[Job] = None
        self._expression: Optional[str] = None
        self._next_fire_at: Optional[datetime] = None
        self._last_fired_for: Optional[datetime] = None
        self._scheduler.add_listener(self._on_job_missed, EVENT_JOB_MISSED)

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def next_fire_at(self) -> Optional[datetime]:
        return self._next_fire_at

    @property
    def running(self) -> bool:
        return self._scheduler.running

    def start(self) -> None:
        self._scheduler.start()
        self.reschedule()
        logger.info("Sync scheduler started")

    def shutdown(self) -> None:
        with self._lock:
            self._cancel_locked()
            self._state = SchedulerState.idle
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
        logger.info("Sync scheduler stopped")

    def reschedule(self) -> None:
        """Apply the latest sync configuration.

        While a run is in flight the change is left for the post-run re-arm,
        which reads the configuration again.
        """
        with self._lock:
            if self._state is SchedulerState.running:
                logger.info("Sync run in progress, schedule change applies after it finishes")
                return
            self._arm_locked()

    def status(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "state": self._state.value,
                "expression": self._expression,
                "next_run": self._next_fire_at.isoformat() if self._next_fire_at else None,
            }

    def _cancel_locked(self) -> None:
        if self._job is not None:
            try:
                self._job.remove()
            except JobLookupError:
                # one-shot job already fired and was dropped by APScheduler
                pass
            self._job = None
        self._next_fire_at = None

    def _arm_locked(self) -> None:
        self._cancel_locked()
        try:
            expression, enabled = self._load_config()
        except Exception as e:
            self._state = SchedulerState.idle
            logger.error(f"Cannot load sync config: {e}")
            return
        self._expression = expression

        if not enabled:
            self._state = SchedulerState.idle
            logger.info("Student sync is disabled, no run scheduled")
            return

        try:
            trigger = build_trigger(expression, self._timezone)
        except ConfigValidationError as e:
            self._state = SchedulerState.idle
            logger.error(f"Cannot schedule student sync: {e}")
            return

        now = datetime.now(trigger.timezone)
        # strictly after now: start from the next whole second
        after = now.replace(microsecond=0) + timedelta(seconds=1)
        next_fire = trigger.get_next_fire_time(None, after)
        if next_fire is None:
            self._state = SchedulerState.idle
            logger.warning(f"Schedule '{expression}' has no future occurrence")
            return

        self._job = self._scheduler.add_job(
            self._fire,
            DateTrigger(run_date=next_fire),
            args=[next_fire],
            id=self.JOB_ID,
            name="Student Sync",
            replace_existing=True,
            misfire_grace_time=self._misfire_grace,
        )
        self._next_fire_at = next_fire
        self._state = SchedulerState.armed
        logger.info(f"Student sync scheduled for {next_fire} ('{expression}')")

    def _on_job_missed(self, event: JobExecutionEvent) -> None:
        """Re-arm after APScheduler drops a fire that came too late to run."""
        if event.job_id != self.JOB_ID:
            return
        with self._lock:
            if self._state is not SchedulerState.armed:
                return
            logger.warning(
                f"Student sync fire for {event.scheduled_run_time} was missed, re-arming"
            )
            self._job = None
            self._arm_locked()

    def _fire(self, scheduled_for: datetime) -> None:
        with self._lock:
            if self._state is SchedulerState.running or scheduled_for == self._last_fired_for:
                logger.warning(f"Skipping duplicate sync fire for {scheduled_for}")
                return
            self._state = SchedulerState.running
            self._job = None
            self._next_fire_at = None
            self._last_fired_for = scheduled_for

        logger.info(f"Student sync firing for {scheduled_for}")
        try:
            self._run_sync()
        except Exception as e:
            logger.error(f"Student sync run failed: {e}")
        finally:
            with self._lock:
                self._state = SchedulerState.idle
                self._arm_locked()


_sync_scheduler: Optional[SyncScheduler] = None


def create_scheduler() -> SyncScheduler:
    from cfsync.scheduler.jobs import load_sync_config, run_student_sync

    return SyncScheduler(run_sync=run_student_sync, load_config=load_sync_config)


def start_scheduler() -> SyncScheduler:
    global _sync_scheduler
    _sync_scheduler = create_scheduler()
    _sync_scheduler.start()
    return _sync_scheduler


def get_sync_scheduler() -> Optional[SyncScheduler]:
    return _sync_scheduler
