"""
Error taxonomy for the search & facts core.

EngineComplexityError  -- the store rejected a pattern as too complex or timed out.
                          Triggers tier fallback; never reaches the caller.
StoreDataError         -- constraint violations, missing tables/columns and any other
                          store failure. Surfaced immediately, never retried.

Empty results are not errors: see NoResults in app schemas.
"""

from typing import Optional

from sqlalchemy.exc import DBAPIError, SQLAlchemyError

# Substrings seen in SQLite and PostgreSQL messages for complexity-class failures
COMPLEXITY_MARKERS = (
    "too complex",
    "like or glob pattern too complex",
    "timeout",
    "timed out",
    "interrupted",
    "canceling statement due to statement timeout",
    "statement timeout",
    "query canceled",
)


class TripDeskError(Exception):
    """Base class for all core errors."""


class EngineComplexityError(TripDeskError):
    """Store refused or abandoned a query because of pattern complexity or time."""

    def __init__(self, message: str, original: Optional[BaseException] = None):
        super().__init__(message)
        self.original = original


class StoreDataError(TripDeskError):
    """Non-recoverable store failure (schema, constraint, connectivity)."""

    def __init__(self, message: str, original: Optional[BaseException] = None):
        super().__init__(message)
        self.original = original


class TripNotFoundError(TripDeskError):
    """Requested trip does not exist in the source tables."""

    def __init__(self, trip_id: int):
        super().__init__(f"Trip {trip_id} not found")
        self.trip_id = trip_id


def _error_text(exc: BaseException) -> str:
    if isinstance(exc, DBAPIError) and exc.orig is not None:
        return f"{exc.orig} {exc}".lower()
    return str(exc).lower()


def is_complexity_error(exc: BaseException) -> bool:
    """True if the exception is a complexity/timeout-class store failure."""
    if isinstance(exc, EngineComplexityError):
        return True
    if isinstance(exc, StoreDataError):
        return False
    message = _error_text(exc)
    return any(marker in message for marker in COMPLEXITY_MARKERS)


def classify_store_error(exc: BaseException) -> TripDeskError:
    """Map a SQLAlchemy / DBAPI error to the core taxonomy."""
    if isinstance(exc, TripDeskError):
        return exc
    if is_complexity_error(exc):
        return EngineComplexityError(str(exc), original=exc)
    if isinstance(exc, SQLAlchemyError):
        return StoreDataError(f"Store error: {exc}", original=exc)
    return StoreDataError(str(exc), original=exc)
