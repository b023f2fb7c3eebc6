from cfsync.models.contest_record import ContestRecord
from cfsync.models.reminder_log import ReminderLog
from cfsync.models.student import Student
from cfsync.models.student_stats import StudentStats
from cfsync.models.submission_record import SubmissionRecord
from cfsync.models.sync_config import SyncConfig

__all__ = [
    "ContestRecord",
    "ReminderLog",
    "Student",
    "StudentStats",
    "SubmissionRecord",
    "SyncConfig",
]
