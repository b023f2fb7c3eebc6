from __future__ import annotations

import enum
from datetime import datetime, timedelta
from typing import Dict, Iterable, Optional, Tuple

from loguru import logger
from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from cfsync.config import get_settings
from cfsync.ingestion.stats import last_activity_at
from cfsync.models import ReminderLog, Student, SubmissionRecord
from cfsync.notifications.email import EmailSender
from cfsync.notifications.formatter import format_inactivity_reminder


class ReminderDecision(enum.Enum):
    send = "send"
    skip = "skip"


class ReminderOutcome(enum.Enum):
    sent = "sent"
    skipped = "skipped"
    failed = "failed"


def decide_reminder(
    reminders_enabled: bool,
    last_activity: Optional[datetime],
    last_reminder_at: Optional[datetime],
    now: datetime,
    inactivity: timedelta,
    cooldown: timedelta,
) -> ReminderDecision:
    if not reminders_enabled:
        return ReminderDecision.skip
    if last_activity is not None and now - last_activity < inactivity:
        return ReminderDecision.skip
    if last_reminder_at is not None and now - last_reminder_at < cooldown:
        return ReminderDecision.skip
    return ReminderDecision.send


class ReminderService:
    """Sends inactivity reminders and keeps each student's sent-count.

    The enable flag and last reminder time are re-read from the database on
    every evaluation. A send is claimed by moving ``last_reminder_at`` from the
    value that was read to ``now`` in one conditional UPDATE before dispatch,
    so two concurrent evaluators never mail the same student for the same
    period. The counter is incremented in SQL only after a successful dispatch.
    """

    def __init__(self, session: Session, sender: Optional[EmailSender] = None):
        self.session = session
        self.settings = get_settings()
        self.sender = sender or EmailSender()

    def _read_reminder_state(self, student: Student) -> Optional[Tuple[bool, Optional[datetime]]]:
        row = self.session.execute(
            select(Student.reminders_enabled, Student.last_reminder_at).where(
                Student.id == student.id
            )
        ).one_or_none()
        return tuple(row) if row is not None else None

    def _last_submission_at(
        self, student: Student, submission_history: Optional[Iterable]
    ) -> Optional[datetime]:
        if submission_history is not None:
            return last_activity_at(submission_history)
        return self.session.execute(
            select(func.max(SubmissionRecord.submitted_at)).where(
                SubmissionRecord.student_id == student.id
            )
        ).scalar_one_or_none()

    def _decide(
        self,
        student: Student,
        enabled: bool,
        last_reminder_at: Optional[datetime],
        last_submission: Optional[datetime],
        now: datetime,
    ) -> ReminderDecision:
        return decide_reminder(
            reminders_enabled=enabled,
            last_activity=last_submission or student.created_at,
            last_reminder_at=last_reminder_at,
            now=now,
            inactivity=timedelta(days=self.settings.reminder_inactivity_days),
            cooldown=timedelta(days=self.settings.reminder_cooldown_days),
        )

    def evaluate(
        self,
        student: Student,
        submission_history: Optional[Iterable] = None,
        now: Optional[datetime] = None,
    ) -> ReminderDecision:
        now = now or datetime.now()
        state = self._read_reminder_state(student)
        if state is None:
            return ReminderDecision.skip

        enabled, last_reminder_at = state
        last_submission = self._last_submission_at(student, submission_history)
        return self._decide(student, enabled, last_reminder_at, last_submission, now)

    def _claim(self, student: Student, previous: Optional[datetime], now: datetime) -> bool:
        """Mark the send as taken. False if another evaluator got there first."""
        if previous is None:
            unchanged = Student.last_reminder_at.is_(None)
        else:
            unchanged = Student.last_reminder_at == previous
        result = self.session.execute(
            update(Student)
            .where(Student.id == student.id, Student.reminders_enabled.is_(True), unchanged)
            .values(last_reminder_at=now)
        )
        self.session.commit()
        return result.rowcount == 1

    def _release(self, student: Student, previous: Optional[datetime], now: datetime) -> None:
        self.session.execute(
            update(Student)
            .where(Student.id == student.id, Student.last_reminder_at == now)
            .values(last_reminder_at=previous)
        )
        self.session.commit()

    def process(self, student: Student, now: Optional[datetime] = None) -> ReminderOutcome:
        now = now or datetime.now()
        state = self._read_reminder_state(student)
        if state is None:
            return ReminderOutcome.skipped

        enabled, previous = state
        last_submission = self._last_submission_at(student, None)
        if self._decide(student, enabled, previous, last_submission, now) is ReminderDecision.skip:
            return ReminderOutcome.skipped

        if not self._claim(student, previous, now):
            logger.info(f"Reminder for student {student.id} already claimed, skipping")
            return ReminderOutcome.skipped

        message = format_inactivity_reminder(student, last_submission, now)
        try:
            sent = self.sender.send(
                student.email, message["subject"], message["html"], message["text"]
            )
        except Exception:
            self._release(student, previous, now)
            raise

        if not sent:
            self._release(student, previous, now)
            logger.error(f"Reminder dispatch failed for student {student.id}")
            return ReminderOutcome.failed

        try:
            self.session.execute(
                update(Student)
                .where(Student.id == student.id)
                .values(reminder_email_count=Student.reminder_email_count + 1)
            )
            self.session.add(ReminderLog(student_id=student.id, email=student.email, sent_at=now))
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error(f"Reminder sent to student {student.id} but not recorded: {e}")
            return ReminderOutcome.failed

        logger.info(f"Inactivity reminder sent to student {student.id}")
        return ReminderOutcome.sent

    def run(self, students: Iterable[Student], now: Optional[datetime] = None) -> Dict[str, int]:
        if not self.settings.reminders_globally_enabled:
            logger.info("Reminders are disabled, skipping evaluation")
            return {}
        if not self.sender.is_configured():
            logger.warning("Email sender is not configured, skipping reminders")
            return {}

        results = {outcome.value: 0 for outcome in ReminderOutcome}
        for student in students:
            try:
                outcome = self.process(student, now=now)
            except Exception as e:
                logger.error(f"Error evaluating reminder for student {student.id}: {e}")
                outcome = ReminderOutcome.failed
            results[outcome.value] += 1

        logger.info(f"Reminder results: {results}")
        return results
