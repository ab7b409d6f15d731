"""
Dirty tracking: the "on write, enqueue work item" hook.

Every ORM insert/update/delete on a trip or one of its child rows appends a
(trip_id, reason, created_at) marker to facts_dirty in the same transaction.
Client updates fan out to every trip the client is on. The consumer side
(FactsEngine.refresh_dirty) drains markers and recomputes the derived rows.

Core-level bulk statements (session.execute(update(Trip)...)) bypass mapper
events; writers using them must call SqlDirtyQueue.enqueue themselves.
"""

import logging
from typing import Iterable, List, Optional

from sqlalchemy import delete, event, func, inspect, or_, select
from sqlalchemy.orm import Session

from tripdesk.db.models import (
    Client,
    FactsDirty,
    Trip,
    TripActivity,
    TripDay,
    TripLeg,
    TripTraveler,
    utcnow,
)
from tripdesk.db.upsert import insert_ignore_stmt

logger = logging.getLogger(__name__)

CHILD_REASON_PREFIXES = {
    TripTraveler: "traveler",
    TripDay: "tripday",
    TripActivity: "activity",
    TripLeg: "leg",
}


class DirtyQueue:
    """Append-only queue of trips whose derived rows need recomputing."""

    def enqueue(self, trip_id: int, reason: str) -> None:
        raise NotImplementedError

    def enqueue_many(self, trip_ids: Iterable[int], reason: str) -> None:
        for trip_id in trip_ids:
            self.enqueue(trip_id, reason)


class SqlDirtyQueue(DirtyQueue):
    """
    facts_dirty writer. Works on a Connection (inside flush events) or a
    Session. Duplicate (trip_id, reason, created_at) rows are ignored.
    """

    def __init__(self, bind):
        self.bind = bind
        dialect = getattr(bind, "dialect", None)
        if dialect is None:
            dialect = bind.get_bind().dialect
        self.dialect_name = dialect.name

    def enqueue(self, trip_id: int, reason: str) -> None:
        if trip_id is None:
            return
        values = {"trip_id": trip_id, "reason": reason, "created_at": utcnow()}
        self.bind.execute(insert_ignore_stmt(self.dialect_name, FactsDirty.__table__, values))


# ============================================================================
# CONSUMER HELPERS
# ============================================================================

def pending_trip_ids(db: Session, limit: int) -> List[int]:
    """Distinct dirty trip ids, oldest marker first."""
    stmt = (
        select(FactsDirty.trip_id)
        .group_by(FactsDirty.trip_id)
        .order_by(func.min(FactsDirty.created_at), FactsDirty.trip_id)
        .limit(limit)
    )
    return list(db.execute(stmt).scalars().all())


def max_marker_id(db: Session) -> Optional[int]:
    return db.execute(select(func.max(FactsDirty.id))).scalar()


def clear_markers(db: Session, trip_ids: Iterable[int], up_to_id: Optional[int] = None) -> int:
    """
    Delete markers for processed trips. Markers newer than up_to_id were
    written after processing started and are kept for the next pass.
    """
    ids = list(trip_ids)
    if not ids:
        return 0
    stmt = delete(FactsDirty).where(FactsDirty.trip_id.in_(ids))
    if up_to_id is not None:
        stmt = stmt.where(FactsDirty.id <= up_to_id)
    return db.execute(stmt).rowcount or 0


# ============================================================================
# ORM WRITE HOOKS
# ============================================================================

def _previous_values(target, attribute: str) -> List:
    history = inspect(target).attrs[attribute].history
    return [value for value in (history.deleted or ()) if value is not None]


def _on_trip_insert(mapper, connection, target):
    SqlDirtyQueue(connection).enqueue(target.trip_id, "trip_insert")


def _on_trip_update(mapper, connection, target):
    SqlDirtyQueue(connection).enqueue(target.trip_id, "trip_update")


def _on_trip_delete(mapper, connection, target):
    SqlDirtyQueue(connection).enqueue(target.trip_id, "trip_delete")


def _child_hook(action: str):
    def hook(mapper, connection, target):
        queue = SqlDirtyQueue(connection)
        reason = f"{CHILD_REASON_PREFIXES[mapper.class_]}_{action}"
        queue.enqueue(target.trip_id, reason)
        if action == "update":
            # Row moved between trips: the old trip changed too
            for old_trip_id in _previous_values(target, "trip_id"):
                if old_trip_id != target.trip_id:
                    queue.enqueue(old_trip_id, reason)
    return hook


def _on_client_update(mapper, connection, target):
    emails = {target.email.lower()} if target.email else set()
    emails.update(e.lower() for e in _previous_values(target, "email"))
    if not emails:
        return
    assigned = select(TripTraveler.trip_id).where(func.lower(TripTraveler.client_email).in_(emails))
    stmt = select(Trip.trip_id).where(
        or_(func.lower(Trip.primary_client_email).in_(emails), Trip.trip_id.in_(assigned))
    )
    trip_ids = list(connection.execute(stmt).scalars().all())
    SqlDirtyQueue(connection).enqueue_many(trip_ids, "client_update")
    if trip_ids:
        logger.debug(f"Client {target.email} update marked {len(trip_ids)} trips dirty")


_HOOKS = [
    (Trip, "after_insert", _on_trip_insert),
    (Trip, "after_update", _on_trip_update),
    (Trip, "after_delete", _on_trip_delete),
    (Client, "after_update", _on_client_update),
]
for _model in CHILD_REASON_PREFIXES:
    for _action in ("insert", "update", "delete"):
        _HOOKS.append((_model, f"after_{_action}", _child_hook(_action)))


def register_write_hooks() -> None:
    """Attach the dirty-marking mapper events. Safe to call more than once."""
    for model, name, hook in _HOOKS:
        if not event.contains(model, name, hook):
            event.listen(model, name, hook)


def unregister_write_hooks() -> None:
    for model, name, hook in _HOOKS:
        if event.contains(model, name, hook):
            event.remove(model, name, hook)


register_write_hooks()
