from __future__ import annotations

from datetime import datetime, timedelta

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from cfsync.api.envelope import ok
from cfsync.config import get_settings
from cfsync.db.database import get_db
from cfsync.ingestion.stats import compute_problem_stats
from cfsync.models import ContestRecord, Student, SubmissionRecord

router = APIRouter(prefix="/api/students", tags=["students"])


class ReminderToggleRequest(BaseModel):
    enabled: bool


async def _get_student(db: AsyncSession, student_id: int) -> Student:
    result = await db.execute(select(Student).where(Student.id == student_id))
    student = result.scalar_one_or_none()
    if not student:
        raise HTTPException(status_code=404, detail="Student not found")
    return student


def _contest_payload(c: ContestRecord) -> dict:
    return {
        "contest_id": c.contest_id,
        "contest_name": c.contest_name,
        "rank": c.rank,
        "old_rating": c.old_rating,
        "new_rating": c.new_rating,
        "rating_change": c.rating_change,
        "contest_date": c.contest_date.isoformat(),
        "unsolved_problems": c.unsolved_problems,
    }


@router.get("")
async def list_students(db: AsyncSession = Depends(get_db)):
    result = await db.execute(
        select(Student).options(selectinload(Student.stats)).order_by(Student.name)
    )
    students = result.scalars().all()
    return ok(
        [
            {
                "id": s.id,
                "name": s.name,
                "email": s.email,
                "phone": s.phone,
                "codeforces_handle": s.codeforces_handle,
                "current_rating": s.current_rating,
                "max_rating": s.max_rating,
                "last_sync_at": s.last_sync_at.isoformat() if s.last_sync_at else None,
                "total_solved": s.stats.total_solved if s.stats else 0,
                "reminders_enabled": s.reminders_enabled,
                "reminder_email_count": s.reminder_email_count,
            }
            for s in students
        ]
    )


@router.get("/{student_id}/contest-history")
async def get_contest_history(
    student_id: int,
    days: int = Query(365, ge=1, le=3650),
    db: AsyncSession = Depends(get_db),
):
    await _get_student(db, student_id)
    cutoff = datetime.now() - timedelta(days=days)
    result = await db.execute(
        select(ContestRecord)
        .where(ContestRecord.student_id == student_id, ContestRecord.contest_date >= cutoff)
        .order_by(ContestRecord.contest_date.desc())
    )
    return ok([_contest_payload(c) for c in result.scalars().all()])


@router.get("/{student_id}/rating-graph")
async def get_rating_graph(
    student_id: int,
    days: int = Query(365, ge=1, le=3650),
    db: AsyncSession = Depends(get_db),
):
    await _get_student(db, student_id)
    cutoff = datetime.now() - timedelta(days=days)
    result = await db.execute(
        select(ContestRecord)
        .where(ContestRecord.student_id == student_id, ContestRecord.contest_date >= cutoff)
        .order_by(ContestRecord.contest_date.asc())
    )
    return ok([_contest_payload(c) for c in result.scalars().all()])


@router.get("/{student_id}/problem-stats")
async def get_problem_stats(
    student_id: int,
    days: int = Query(90, ge=1, le=3650),
    db: AsyncSession = Depends(get_db),
):
    await _get_student(db, student_id)
    now = datetime.now()
    result = await db.execute(
        select(SubmissionRecord).where(
            SubmissionRecord.student_id == student_id,
            SubmissionRecord.submitted_at >= now - timedelta(days=days),
        )
    )
    stats = compute_problem_stats(
        result.scalars().all(),
        days=days,
        now=now,
        bucket_width=get_settings().rating_bucket_width,
    )
    return ok(stats.to_dict())


@router.get("/{student_id}/reminder-info")
async def get_reminder_info(student_id: int, db: AsyncSession = Depends(get_db)):
    student = await _get_student(db, student_id)
    return ok(
        {
            "reminder_email_count": student.reminder_email_count,
            "reminders_enabled": student.reminders_enabled,
            "last_reminder_at": (
                student.last_reminder_at.isoformat() if student.last_reminder_at else None
            ),
        }
    )


@router.post("/{student_id}/disable-reminder")
async def toggle_reminder(
    student_id: int,
    body: ReminderToggleRequest,
    db: AsyncSession = Depends(get_db),
):
    student = await _get_student(db, student_id)
    student.reminders_enabled = body.enabled
    await db.commit()
    await db.refresh(student, attribute_names=["reminders_enabled"])
    return ok({"reminders_enabled": student.reminders_enabled})
