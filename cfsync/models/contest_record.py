from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from cfsync.db.database import Base
from cfsync.models.base import TimestampMixin

if TYPE_CHECKING:
    from cfsync.models.student import Student


class ContestRecord(Base, TimestampMixin):
    __tablename__ = "contest_records"
    __table_args__ = (
        UniqueConstraint("student_id", "contest_id", name="uq_contest_per_student"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    student_id: Mapped[int] = mapped_column(ForeignKey("students.id"), nullable=False)
    contest_id: Mapped[int] = mapped_column(Integer, nullable=False)
    contest_name: Mapped[str] = mapped_column(String(255), nullable=False)
    rank: Mapped[int] = mapped_column(Integer, nullable=False)
    old_rating: Mapped[int] = mapped_column(Integer, nullable=False)
    new_rating: Mapped[int] = mapped_column(Integer, nullable=False)
    rating_change: Mapped[int] = mapped_column(Integer, nullable=False)
    contest_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    unsolved_problems: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    student: Mapped["Student"] = relationship(back_populates="contests")

    def __repr__(self) -> str:
        return f"<ContestRecord student={self.student_id} contest={self.contest_id}>"
