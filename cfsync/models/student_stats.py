from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Dict, Optional

from sqlalchemy import JSON, DateTime, Float, ForeignKey, Integer
from sqlalchemy.orm import Mapped, mapped_column, relationship

from cfsync.db.database import Base

if TYPE_CHECKING:
    from cfsync.models.student import Student


class StudentStats(Base):
    """Problem-solving snapshot recomputed from stored submissions on every sync."""

    __tablename__ = "student_stats"

    id: Mapped[int] = mapped_column(primary_key=True)
    student_id: Mapped[int] = mapped_column(
        ForeignKey("students.id"), unique=True, nullable=False
    )
    window_days: Mapped[int] = mapped_column(Integer, nullable=False)
    total_solved: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    most_difficult: Mapped[Optional[int]] = mapped_column(Integer)
    avg_rating: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    avg_problems_per_day: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    rating_buckets: Mapped[Dict[str, int]] = mapped_column(JSON, default=dict)
    submission_heatmap: Mapped[Dict[str, int]] = mapped_column(JSON, default=dict)
    computed_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    student: Mapped["Student"] = relationship(back_populates="stats")

    def __repr__(self) -> str:
        return f"<StudentStats student={self.student_id} solved={self.total_solved}>"
