"""
TripDesk Search & Facts Engine -- FastAPI Application

Agents search trips by name, client, email or slug; derived trip facts are
kept fresh by write hooks plus a periodic drain of the dirty queue.
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
import asyncio
import logging
import logging.config
import time
from typing import Callable

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded

from tripdesk.api import health, routes_facts, routes_search
from tripdesk.core.config import settings
from tripdesk.core.errors import StoreDataError, TripDeskError, TripNotFoundError
from tripdesk.core.rate_limiting import limiter, rate_limit_handler
from tripdesk.db.database import background_session, init_db
from tripdesk.services.facts_engine import FactsEngine


def build_logging_config(level: str, fmt: str) -> dict:
    handler_formatter = "json" if fmt == "json" else "plain"
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "plain": {
                "format": "%(asctime)s %(levelname)-7s %(name)s [%(filename)s:%(lineno)d] %(message)s"
            },
            "json": {"()": "tripdesk.core.monitoring.JSONFormatter"},
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": handler_formatter,
                "stream": "ext://sys.stdout",
            },
        },
        "loggers": {
            "tripdesk": {"handlers": ["console"], "level": level},
            "uvicorn": {"handlers": ["console"], "level": "INFO"},
            "sqlalchemy": {"handlers": ["console"], "level": "WARNING"},
        },
    }


logging.config.dictConfig(build_logging_config(settings.log_level, settings.log_format))
logger = logging.getLogger(__name__)


def drain_dirty_queue() -> int:
    """One pass over the dirty queue on the background connection."""
    db = background_session()
    try:
        return FactsEngine(db).refresh_dirty()
    finally:
        db.close()


async def _facts_refresh_loop(interval: float, drain: Callable[[], int] = drain_dirty_queue):
    """Runs until cancelled; a failed pass is logged and retried on the next tick."""
    while True:
        await asyncio.sleep(interval)
        try:
            processed = await asyncio.to_thread(drain)
        except TripDeskError as e:
            logger.error(f"Background facts refresh failed: {e}")
            continue
        except Exception as e:
            logger.error(f"Background facts refresh crashed: {e}", exc_info=True)
            continue
        if processed:
            logger.info(f"Background facts refresh: {processed} trips recomputed")


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"{settings.app_name} v{settings.app_version} starting ({settings.environment})")

    attempts = settings.database_init_attempts
    for attempt in range(1, attempts + 1):
        try:
            init_db()
            break
        except Exception as e:
            if attempt == attempts:
                logger.error(f"Trip store unavailable after {attempts} attempts: {e}")
                raise
            logger.warning(f"Trip store not ready (attempt {attempt}/{attempts}): {e}")
            await asyncio.sleep(2)
    logger.info("Trip store schema ready")

    refresher = None
    if settings.facts_refresh_interval_seconds > 0:
        refresher = asyncio.create_task(_facts_refresh_loop(settings.facts_refresh_interval_seconds))
        logger.info(f"Dirty queue drained every {settings.facts_refresh_interval_seconds}s")

    yield

    if refresher is not None:
        refresher.cancel()
        try:
            await refresher
        except asyncio.CancelledError:
            pass
    logger.info("Shutdown complete")


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Trip search, semantic ranking and derived-facts consistency for travel agents.",
    docs_url="/docs" if settings.debug else None,
    redoc_url=None,
    openapi_url="/openapi.json" if settings.debug else None,
    lifespan=lifespan,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_handler)

app.add_middleware(GZipMiddleware, minimum_size=500)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
)

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "strict-origin-when-cross-origin",
}


@app.middleware("http")
async def timing_middleware(request: Request, call_next):
    started = time.perf_counter()
    response = await call_next(request)
    elapsed = time.perf_counter() - started

    response.headers["X-Process-Time"] = f"{elapsed:.3f}"
    response.headers.update(SECURITY_HEADERS)
    request_id = request.headers.get("X-Request-ID")
    if request_id:
        response.headers["X-Request-ID"] = request_id

    log = logger.warning if elapsed > settings.slow_request_seconds else logger.info
    log(f"{request.method} {request.url.path} {response.status_code} {elapsed * 1000:.0f}ms")
    return response


def _error_body(code: str, detail: str) -> dict:
    return {"error": code, "detail": detail, "timestamp": datetime.now(timezone.utc).isoformat()}


@app.exception_handler(TripNotFoundError)
async def trip_not_found_handler(request: Request, exc: TripNotFoundError):
    return JSONResponse(status_code=404, content=_error_body("trip_not_found", str(exc)))


@app.exception_handler(StoreDataError)
async def store_error_handler(request: Request, exc: StoreDataError):
    """Store failures are surfaced, never retried."""
    logger.error(f"Trip store rejected {request.url.path}: {exc}", exc_info=exc.original or exc)
    detail = str(exc) if settings.debug else "The trip store rejected the request"
    return JSONResponse(status_code=500, content=_error_body("store_error", detail))


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.url.path}: {exc}", exc_info=True)
    detail = str(exc) if settings.debug else "An unexpected error occurred"
    return JSONResponse(status_code=500, content=_error_body("internal_error", detail))


for router in (health.router, routes_search.router, routes_facts.router):
    app.include_router(router, prefix=settings.api_prefix)


@app.get("/")
async def root():
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "search": f"{settings.api_prefix}/trips/search",
        "health": f"{settings.api_prefix}/health",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "tripdesk.main:app",
        host=settings.api_host,
        port=settings.api_port,
        workers=settings.api_workers,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
