from __future__ import annotations

from typing import Optional


class FetchError(Exception):
    """Base class for rating-service read failures."""

    def __init__(self, message: str, handle: Optional[str] = None):
        super().__init__(message)
        self.handle = handle


class TransientFetchError(FetchError):
    """Network, timeout or rate-limit failure that may succeed on retry."""


class PermanentFetchError(FetchError):
    """Unknown handle or malformed response. Never retried."""


class ConfigValidationError(ValueError):
    """Schedule expression the scheduler cannot arm."""


class PersistenceError(Exception):
    """Write failure while storing one student's ingested data."""
