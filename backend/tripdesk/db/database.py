"""
Database connection and session management.
Engine with connection pooling, health-checked connections and automatic
recycling. Supports PostgreSQL and SQLite backends.
"""

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import QueuePool, StaticPool
from typing import Generator
import logging
import os

from tripdesk.core.config import settings
from tripdesk.db.models import Base
from tripdesk.services.dirty_tracking import register_write_hooks

logger = logging.getLogger(__name__)


def _sqlite_url(database_url: str) -> str:
    """Resolve ./relative SQLite paths against the backend directory."""
    db_path = database_url.replace("sqlite:///", "")
    if db_path.startswith("./"):
        db_path = os.path.join(os.path.dirname(os.path.dirname(os.path.dirname(__file__))), db_path[2:])
        return f"sqlite:///{db_path}"
    return database_url


def build_engine(database_url: str) -> Engine:
    """Create an engine configured for the backend in use."""
    if database_url.startswith("sqlite"):
        engine = create_engine(
            _sqlite_url(database_url),
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
            echo=False,
        )

        @event.listens_for(engine, "connect")
        def set_sqlite_pragma(dbapi_conn, connection_record):
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute("PRAGMA synchronous=NORMAL")
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        return engine

    # PostgreSQL: pooled, with a server-side statement timeout as the hard cap
    _connect_args = {
        "connect_timeout": 10,
        "options": f"-c statement_timeout={settings.database_statement_timeout_ms}",
    }
    engine = create_engine(
        database_url,
        poolclass=QueuePool,
        pool_size=settings.database_pool_size,
        max_overflow=settings.database_max_overflow,
        pool_recycle=settings.database_pool_recycle,
        pool_pre_ping=settings.database_pool_pre_ping,
        pool_timeout=30,
        echo=False,
        connect_args=_connect_args,
    )

    @event.listens_for(engine, "connect")
    def receive_connect(dbapi_conn, connection_record):
        """Tag connections so they are identifiable in pg_stat_activity."""
        cursor = dbapi_conn.cursor()
        cursor.execute("SET application_name = 'tripdesk'")
        cursor.close()

    return engine


engine = build_engine(settings.database_url)

# Create session factory
SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)


def get_db() -> Generator[Session, None, None]:
    """Dependency injection for a request-scoped database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


_background_sessions = None


def background_session() -> Session:
    """
    Session for work outside a request, such as the periodic dirty-queue drain.

    A file-backed SQLite engine runs on a StaticPool that shares one connection, so
    a rollback in any request session would also discard uncommitted background
    work. Background sessions there get an engine and connection of their own.
    Pooled backends already hand each session its own connection.
    """
    global _background_sessions
    if _background_sessions is None:
        bind = engine
        if engine.dialect.name == "sqlite" and engine.url.database not in (None, "", ":memory:"):
            bind = build_engine(settings.database_url)
        _background_sessions = sessionmaker(autocommit=False, autoflush=False, bind=bind)
    return _background_sessions()


def init_db(bind: Engine = None) -> None:
    """Create tables and attach the dirty-tracking write hooks."""
    logger.info("Initializing database schema...")
    Base.metadata.create_all(bind=bind or engine)
    register_write_hooks()
    logger.info("Database schema initialized")
