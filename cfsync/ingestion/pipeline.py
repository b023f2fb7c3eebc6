from __future__ import annotations

import enum
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Protocol

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from cfsync.config import get_settings
from cfsync.exceptions import FetchError, PersistenceError
from cfsync.ingestion.client import (
    CodeforcesClient,
    ContestResult,
    FetchedHistory,
    SubmissionResult,
)
from cfsync.ingestion.stats import compute_problem_stats, count_unsolved_by_contest
from cfsync.models import ContestRecord, Student, StudentStats, SubmissionRecord


class RatingClient(Protocol):
    def fetch_history(self, handle: str) -> FetchedHistory: ...


class OutcomeStatus(enum.Enum):
    success = "success"
    skipped = "skipped"
    failed = "failed"


@dataclass
class StudentOutcome:
    student_id: int
    handle: Optional[str]
    status: OutcomeStatus
    reason: Optional[str] = None
    contests: int = 0
    submissions: int = 0


@dataclass
class SyncReport:
    started_at: datetime
    finished_at: Optional[datetime] = None
    outcomes: List[StudentOutcome] = field(default_factory=list)

    def _count(self, status: OutcomeStatus) -> int:
        return sum(1 for o in self.outcomes if o.status is status)

    @property
    def success_count(self) -> int:
        return self._count(OutcomeStatus.success)

    @property
    def skipped_count(self) -> int:
        return self._count(OutcomeStatus.skipped)

    @property
    def failed_count(self) -> int:
        return self._count(OutcomeStatus.failed)

    @property
    def failures(self) -> List[StudentOutcome]:
        return [o for o in self.outcomes if o.status is OutcomeStatus.failed]

    @property
    def duration_seconds(self) -> float:
        if self.finished_at is None:
            return 0.0
        return (self.finished_at - self.started_at).total_seconds()

    def summary(self) -> Dict[str, float]:
        return {
            "success": self.success_count,
            "skipped": self.skipped_count,
            "failed": self.failed_count,
            "duration_seconds": round(self.duration_seconds, 2),
        }


class IngestionPipeline:
    """Pulls rating-service history for a roster and stores it per student.

    Fetches run concurrently on a bounded thread pool. Results are persisted
    on the calling thread, one transaction per student, so a failed fetch or
    write only marks that student as failed.
    """

    def __init__(
        self,
        session: Session,
        client: Optional[RatingClient] = None,
        max_workers: Optional[int] = None,
    ):
        self.session = session
        self.settings = get_settings()
        self.client = client
        self.max_workers = max_workers or self.settings.sync_max_workers

    def run(self, students: Optional[Iterable[Student]] = None) -> SyncReport:
        if students is None:
            students = self.session.query(Student).all()
        students = list(students)

        started_at = datetime.now()
        report = SyncReport(started_at=started_at)
        logger.info(f"Starting ingestion run for {len(students)} students")

        client = self.client or CodeforcesClient()
        try:
            self._fetch_and_store(client, students, report)
        finally:
            if self.client is None:
                client.close()

        report.finished_at = datetime.now()
        logger.info(f"Ingestion run finished: {report.summary()}")
        return report

    def _fetch_and_store(
        self, client: RatingClient, students: List[Student], report: SyncReport
    ) -> None:
        pending: Dict[Future, Student] = {}
        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            for student in students:
                handle = (student.codeforces_handle or "").strip()
                if not handle:
                    report.outcomes.append(
                        StudentOutcome(student.id, None, OutcomeStatus.skipped, "no handle")
                    )
                    continue
                pending[pool.submit(client.fetch_history, handle)] = student

            for future in as_completed(pending):
                student = pending[future]
                report.outcomes.append(self._ingest(student, future, report.started_at))

    def _ingest(self, student: Student, future: Future, started_at: datetime) -> StudentOutcome:
        student_id = student.id
        handle = student.codeforces_handle
        try:
            history = future.result()
        except FetchError as e:
            logger.warning(f"Fetch failed for student {student_id} ({handle}): {e}")
            return StudentOutcome(student_id, handle, OutcomeStatus.failed, str(e))

        try:
            self.save_history(student, history, started_at)
        except PersistenceError as e:
            logger.error(f"Persist failed for student {student_id} ({handle}): {e}")
            return StudentOutcome(student_id, handle, OutcomeStatus.failed, str(e))

        return StudentOutcome(
            student_id,
            handle,
            OutcomeStatus.success,
            contests=len(history.contests),
            submissions=len(history.submissions),
        )

    def save_history(self, student: Student, history: FetchedHistory, synced_at: datetime) -> None:
        try:
            self._upsert_submissions(student, history.submissions)
            contests = self._upsert_contests(student, history.contests)
            self.session.flush()

            submissions = (
                self.session.query(SubmissionRecord).filter_by(student_id=student.id).all()
            )
            unsolved = count_unsolved_by_contest(submissions)
            for record in contests:
                record.unsolved_problems = unsolved.get(record.contest_id, 0)

            self._update_ratings(student)
            student.last_sync_at = synced_at
            self._store_stats(student, submissions, synced_at)
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            raise PersistenceError(str(e)) from e

    def _upsert_contests(
        self, student: Student, results: List[ContestResult]
    ) -> List[ContestRecord]:
        existing = {
            record.contest_id: record
            for record in self.session.query(ContestRecord).filter_by(student_id=student.id)
        }
        for result in results:
            values = {
                "contest_name": result.contest_name,
                "rank": result.rank,
                "old_rating": result.old_rating,
                "new_rating": result.new_rating,
                "rating_change": result.rating_change,
                "contest_date": result.contest_date,
            }
            record = existing.get(result.contest_id)
            if record:
                for key, value in values.items():
                    setattr(record, key, value)
            else:
                record = ContestRecord(
                    student_id=student.id, contest_id=result.contest_id, **values
                )
                self.session.add(record)
                existing[result.contest_id] = record
        return list(existing.values())

    def _upsert_submissions(self, student: Student, results: List[SubmissionResult]) -> None:
        existing = {
            record.submission_id: record
            for record in self.session.query(SubmissionRecord).filter_by(student_id=student.id)
        }
        for result in results:
            values = {
                "contest_id": result.contest_id,
                "problem_index": result.problem_index,
                "problem_name": result.problem_name,
                "problem_rating": result.problem_rating,
                "verdict": result.verdict,
                "submitted_at": result.submitted_at,
            }
            record = existing.get(result.submission_id)
            if record:
                for key, value in values.items():
                    setattr(record, key, value)
            else:
                record = SubmissionRecord(
                    student_id=student.id, submission_id=result.submission_id, **values
                )
                self.session.add(record)
                existing[result.submission_id] = record

    def _update_ratings(self, student: Student) -> None:
        contests = (
            self.session.query(ContestRecord)
            .filter_by(student_id=student.id)
            .order_by(ContestRecord.contest_date.desc())
            .all()
        )
        if not contests:
            return
        student.current_rating = contests[0].new_rating
        student.max_rating = max(c.new_rating for c in contests)

    def _store_stats(
        self, student: Student, submissions: List[SubmissionRecord], computed_at: datetime
    ) -> None:
        stats = compute_problem_stats(
            submissions,
            days=self.settings.stats_window_days,
            now=computed_at,
            bucket_width=self.settings.rating_bucket_width,
        )
        row = self.session.query(StudentStats).filter_by(student_id=student.id).first()
        if row is None:
            row = StudentStats(student_id=student.id)
            self.session.add(row)
        row.window_days = stats.window_days
        row.total_solved = stats.total_solved
        row.most_difficult = stats.most_difficult
        row.avg_rating = stats.avg_rating
        row.avg_problems_per_day = stats.avg_problems_per_day
        row.rating_buckets = stats.problems_per_rating_bucket
        row.submission_heatmap = stats.submission_heatmap
        row.computed_at = computed_at
