from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

import httpx
from loguru import logger

from cfsync.config import get_settings
from cfsync.exceptions import FetchError, PermanentFetchError, TransientFetchError


@dataclass
class ContestResult:
    contest_id: int
    contest_name: str
    rank: int
    old_rating: int
    new_rating: int
    contest_date: datetime

    @property
    def rating_change(self) -> int:
        return self.new_rating - self.old_rating


@dataclass
class SubmissionResult:
    submission_id: int
    contest_id: Optional[int]
    problem_index: str
    problem_name: str
    problem_rating: Optional[int]
    verdict: Optional[str]
    submitted_at: datetime


@dataclass
class FetchedHistory:
    handle: str
    contests: List[ContestResult] = field(default_factory=list)
    submissions: List[SubmissionResult] = field(default_factory=list)


class CodeforcesClient:
    """Read-only client for the Codeforces public API.

    Transient failures (transport errors, timeouts, HTTP 429/5xx, call-limit
    responses) are retried with exponential backoff. Unknown handles and
    malformed payloads raise ``PermanentFetchError`` immediately.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
        backoff_base: Optional[float] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        settings = get_settings()
        self.base_url = (base_url or settings.codeforces_api_base).rstrip("/")
        self.max_retries = max_retries if max_retries is not None else settings.fetch_max_retries
        self.backoff_base = (
            backoff_base if backoff_base is not None else settings.fetch_backoff_base
        )
        self.client = httpx.Client(
            timeout=timeout if timeout is not None else settings.fetch_timeout,
            headers={"User-Agent": "cfsync/0.1"},
            transport=transport,
        )

    def close(self) -> None:
        self.client.close()

    def _request_once(self, method: str, params: Dict[str, Any]) -> Any:
        handle = params.get("handle")
        try:
            resp = self.client.get(f"{self.base_url}/{method}", params=params)
        except httpx.TimeoutException as e:
            raise TransientFetchError(f"{method} timed out: {e}", handle) from e
        except httpx.RequestError as e:
            raise TransientFetchError(f"{method} request failed: {e}", handle) from e

        if resp.status_code == 429 or resp.status_code >= 500:
            raise TransientFetchError(f"{method} returned HTTP {resp.status_code}", handle)

        try:
            data = resp.json()
        except ValueError as e:
            raise PermanentFetchError(f"{method} returned invalid JSON", handle) from e

        if not isinstance(data, dict):
            raise PermanentFetchError(f"{method} returned unexpected payload", handle)

        if data.get("status") != "OK":
            comment = str(data.get("comment") or f"HTTP {resp.status_code}")
            if "limit exceeded" in comment.lower():
                raise TransientFetchError(f"{method}: {comment}", handle)
            raise PermanentFetchError(f"{method}: {comment}", handle)

        return data.get("result")

    def _request(self, method: str, params: Dict[str, Any]) -> Any:
        for attempt in range(self.max_retries):
            try:
                return self._request_once(method, params)
            except TransientFetchError as e:
                logger.warning(f"Attempt {attempt + 1}/{self.max_retries} failed for {method}: {e}")
                if attempt == self.max_retries - 1:
                    raise
                time.sleep(self.backoff_base * 2 ** attempt)
        raise TransientFetchError(f"{method} was not attempted", params.get("handle"))

    def fetch_contest_history(self, handle: str) -> List[ContestResult]:
        result = self._request("user.rating", {"handle": handle})
        try:
            return [
                ContestResult(
                    contest_id=int(item["contestId"]),
                    contest_name=item["contestName"],
                    rank=int(item["rank"]),
                    old_rating=int(item["oldRating"]),
                    new_rating=int(item["newRating"]),
                    contest_date=datetime.fromtimestamp(item["ratingUpdateTimeSeconds"]),
                )
                for item in result or []
            ]
        except (KeyError, TypeError, ValueError) as e:
            raise PermanentFetchError(f"Malformed rating history: {e}", handle) from e

    def fetch_submissions(self, handle: str) -> List[SubmissionResult]:
        result = self._request("user.status", {"handle": handle})
        try:
            submissions = []
            for item in result or []:
                problem = item["problem"]
                rating = problem.get("rating")
                submissions.append(
                    SubmissionResult(
                        submission_id=int(item["id"]),
                        contest_id=item.get("contestId", problem.get("contestId")),
                        problem_index=str(problem["index"]),
                        problem_name=problem.get("name", ""),
                        problem_rating=int(rating) if rating is not None else None,
                        verdict=item.get("verdict"),
                        submitted_at=datetime.fromtimestamp(item["creationTimeSeconds"]),
                    )
                )
            return submissions
        except (KeyError, TypeError, ValueError) as e:
            raise PermanentFetchError(f"Malformed submission list: {e}", handle) from e

    def fetch_history(self, handle: str) -> FetchedHistory:
        """Fetch contests and submissions for one handle.

        Raises:
            FetchError: transient after retries are exhausted, or permanent.
        """
        try:
            contests = self.fetch_contest_history(handle)
            submissions = self.fetch_submissions(handle)
        except FetchError:
            raise
        except Exception as e:
            raise PermanentFetchError(f"Unexpected error for {handle}: {e}", handle) from e
        return FetchedHistory(handle=handle, contests=contests, submissions=submissions)
