"""Pure functions deriving problem-solving statistics from submission history.

Inputs are any objects exposing ``contest_id``, ``problem_index``,
``problem_rating``, ``verdict`` and ``submitted_at`` (stored
``SubmissionRecord`` rows and fetched ``SubmissionResult`` values both qualify).
"""
from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional, Tuple

ACCEPTED = "OK"

ProblemKey = Tuple[Optional[int], str]


@dataclass
class ProblemStats:
    window_days: int
    total_solved: int = 0
    most_difficult: Optional[int] = None
    avg_rating: float = 0.0
    avg_problems_per_day: float = 0.0
    problems_per_rating_bucket: Dict[str, int] = field(default_factory=dict)
    submission_heatmap: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "most_difficult": self.most_difficult or 0,
            "total_solved": self.total_solved,
            "avg_rating": self.avg_rating,
            "avg_problems_per_day": self.avg_problems_per_day,
            "problems_per_rating_bucket": self.problems_per_rating_bucket,
            "submission_heatmap": self.submission_heatmap,
        }


def problem_key(submission) -> ProblemKey:
    return (submission.contest_id, submission.problem_index)


def within_window(items: Iterable, days: int, now: datetime, attr: str = "submitted_at") -> List:
    cutoff = now - timedelta(days=days)
    return [item for item in items if getattr(item, attr) >= cutoff]


def first_solves(submissions: Iterable) -> Dict[ProblemKey, Any]:
    """Earliest accepted submission per distinct problem."""
    solved: Dict[ProblemKey, Any] = {}
    for sub in sorted(submissions, key=lambda s: s.submitted_at):
        if sub.verdict == ACCEPTED:
            solved.setdefault(problem_key(sub), sub)
    return solved


def rating_bucket(rating: int, width: int) -> str:
    return str(rating // width * width)


def compute_problem_stats(
    submissions: Iterable,
    days: int,
    now: datetime,
    bucket_width: int = 100,
) -> ProblemStats:
    recent = within_window(submissions, days, now)
    solved = list(first_solves(recent).values())
    rated = [s.problem_rating for s in solved if s.problem_rating]

    buckets = Counter(rating_bucket(r, bucket_width) for r in rated)
    heatmap = Counter(s.submitted_at.date().isoformat() for s in recent)

    return ProblemStats(
        window_days=days,
        total_solved=len(solved),
        most_difficult=max(rated) if rated else None,
        avg_rating=round(sum(rated) / len(rated), 2) if rated else 0.0,
        avg_problems_per_day=round(len(solved) / days, 2) if days > 0 else 0.0,
        problems_per_rating_bucket=dict(sorted(buckets.items(), key=lambda kv: int(kv[0]))),
        submission_heatmap=dict(sorted(heatmap.items())),
    )


def count_unsolved_by_contest(submissions: Iterable) -> Dict[int, int]:
    """Distinct problems per contest that were attempted but never accepted."""
    attempted: Dict[int, set] = {}
    accepted: Dict[int, set] = {}
    for sub in submissions:
        if sub.contest_id is None:
            continue
        attempted.setdefault(sub.contest_id, set()).add(sub.problem_index)
        if sub.verdict == ACCEPTED:
            accepted.setdefault(sub.contest_id, set()).add(sub.problem_index)
    return {
        contest_id: len(indexes - accepted.get(contest_id, set()))
        for contest_id, indexes in attempted.items()
    }


def last_activity_at(submissions: Iterable) -> Optional[datetime]:
    times = [s.submitted_at for s in submissions]
    return max(times) if times else None
