from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import Boolean, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from cfsync.db.database import Base
from cfsync.models.base import TimestampMixin

if TYPE_CHECKING:
    from cfsync.models.contest_record import ContestRecord
    from cfsync.models.student_stats import StudentStats
    from cfsync.models.submission_record import SubmissionRecord


class Student(Base, TimestampMixin):
    __tablename__ = "students"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[Optional[str]] = mapped_column(String(30))
    codeforces_handle: Mapped[Optional[str]] = mapped_column(String(50), index=True)

    # Written by the ingestion pipeline only
    current_rating: Mapped[Optional[int]] = mapped_column(Integer)
    max_rating: Mapped[Optional[int]] = mapped_column(Integer)
    last_sync_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    # Toggle is user-owned; count and timestamp belong to the reminder service
    reminders_enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    reminder_email_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_reminder_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    contests: Mapped[List["ContestRecord"]] = relationship(
        back_populates="student", cascade="all, delete-orphan"
    )
    submissions: Mapped[List["SubmissionRecord"]] = relationship(
        back_populates="student", cascade="all, delete-orphan"
    )
    stats: Mapped[Optional["StudentStats"]] = relationship(
        back_populates="student", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<Student {self.name} ({self.codeforces_handle})>"
