"""
Structured logging and timing for search and facts operations.
"""

from datetime import datetime, timezone
from functools import wraps
from typing import Any, Callable
import json
import logging
import time

logger = logging.getLogger(__name__)

# Attributes passed through ``extra=`` that are copied into JSON records
CONTEXT_FIELDS = ("duration_ms", "tier", "trip_id", "processed")


class JSONFormatter(logging.Formatter):
    """One JSON object per record, with search/facts context when present."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            "where": f"{record.module}.{record.funcName}:{record.lineno}",
        }
        for field in CONTEXT_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                payload[field] = value
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def track_performance(operation_name: str, slow_ms: float = 2000.0):
    """Log how long ``operation_name`` took; calls over ``slow_ms`` log a warning."""
    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            started = time.perf_counter()
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                ms = (time.perf_counter() - started) * 1000
                logger.error(f"{operation_name} raised after {ms:.0f}ms: {e}")
                raise
            ms = round((time.perf_counter() - started) * 1000, 1)
            if ms > slow_ms:
                logger.warning(f"{operation_name} took {ms:.0f}ms (over {slow_ms:.0f}ms)", extra={"duration_ms": ms})
            else:
                logger.info(f"{operation_name} took {ms:.0f}ms", extra={"duration_ms": ms})
            return result

        return wrapper

    return decorator
