from __future__ import annotations

from datetime import datetime
from typing import Dict, Optional, Tuple

from loguru import logger

from cfsync.db.database import get_sync_session
from cfsync.db.seed import get_or_create_sync_config
from cfsync.ingestion.pipeline import IngestionPipeline, SyncReport
from cfsync.models import Student
from cfsync.notifications.reminders import ReminderService


def load_sync_config() -> Tuple[str, bool]:
    """讀取最新的同步排程設定"""
    with get_sync_session() as session:
        config = get_or_create_sync_config(session)
        return config.cron_time, config.enabled


def run_student_sync() -> Optional[SyncReport]:
    """排程任務：同步所有學生的 Codeforces 資料，之後寄送不活躍提醒"""
    logger.info(f"Starting student sync at {datetime.now()}")

    with get_sync_session() as session:
        students = session.query(Student).all()
        if not students:
            logger.info("No students to sync")
            return None

        report = IngestionPipeline(session).run(students)
        for failure in report.failures:
            logger.warning(
                f"Student {failure.student_id} ({failure.handle}) failed: {failure.reason}"
            )

        try:
            ReminderService(session).run(students)
        except Exception as e:
            logger.error(f"Error sending inactivity reminders: {e}")

    logger.info("Student sync completed")
    return report


def run_inactivity_reminders() -> Dict[str, int]:
    """只寄送不活躍提醒，不重新抓取資料"""
    with get_sync_session() as session:
        students = session.query(Student).all()
        return ReminderService(session).run(students)
