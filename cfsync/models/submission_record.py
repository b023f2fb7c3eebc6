from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from cfsync.db.database import Base

if TYPE_CHECKING:
    from cfsync.models.student import Student


class SubmissionRecord(Base):
    __tablename__ = "submission_records"
    __table_args__ = (
        UniqueConstraint("student_id", "submission_id", name="uq_submission_per_student"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    student_id: Mapped[int] = mapped_column(ForeignKey("students.id"), nullable=False)
    submission_id: Mapped[int] = mapped_column(Integer, nullable=False)
    contest_id: Mapped[Optional[int]] = mapped_column(Integer)
    problem_index: Mapped[str] = mapped_column(String(10), nullable=False)
    problem_name: Mapped[str] = mapped_column(String(255), nullable=False)
    problem_rating: Mapped[Optional[int]] = mapped_column(Integer)
    verdict: Mapped[Optional[str]] = mapped_column(String(50))
    submitted_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)

    student: Mapped["Student"] = relationship(back_populates="submissions")

    def __repr__(self) -> str:
        return (
            f"<SubmissionRecord student={self.student_id} "
            f"{self.contest_id}{self.problem_index} {self.verdict}>"
        )
