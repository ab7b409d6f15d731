"""
Health check routes.
Probes for load-balancer readiness, plus trip and dirty-queue counts.
"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from datetime import datetime, timezone
import time
import logging

from tripdesk.db.database import get_db
from tripdesk.db.repositories import TripRepository
from tripdesk.core.rate_limiting import limiter, HEALTH_LIMIT

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/health", tags=["health"])

# Track startup time for uptime reporting
_STARTUP_TIME = time.time()


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@router.get("/")
@limiter.limit(HEALTH_LIMIT)
def health_check(request: Request, db: Session = Depends(get_db)):
    """
    Database connectivity, trip count, pending dirty markers and uptime.
    Reports degraded rather than failing.
    """
    health = {
        "status": "healthy",
        "database": "unavailable",
        "trips": 0,
        "dirty_queue": 0,
        "uptime_seconds": int(time.time() - _STARTUP_TIME),
        "timestamp": _now(),
    }

    try:
        repo = TripRepository(db)
        health["trips"] = repo.count_trips()
        health["dirty_queue"] = repo.count_dirty()
        health["database"] = "available"
    except SQLAlchemyError as e:
        logger.error(f"Database health check failed: {e}")
        health["status"] = "degraded"

    return health


@router.get("/ready")
@limiter.limit(HEALTH_LIMIT)
def readiness_check(request: Request, db: Session = Depends(get_db)):
    """Ready only when the database answers."""
    try:
        db.execute(text("SELECT 1"))
        return {"ready": True, "timestamp": _now()}
    except SQLAlchemyError as e:
        logger.error(f"Readiness check failed: {e}")
        return {"ready": False, "error": str(e), "timestamp": _now()}


@router.get("/live")
def liveness_check():
    """Liveness probe. Returns 200 if service is running."""
    return {"alive": True, "uptime_seconds": int(time.time() - _STARTUP_TIME), "timestamp": _now()}
