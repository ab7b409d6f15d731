"""
Facts Recomputation Engine
Keeps trip_facts, trip_search_surface and trip_components consistent with
the source tables.

  ensure_facts_fresh   reactive, per trip (inline for small trips)
  bulk_refresh_facts   sweep of missing / stale / dirty trips
  refresh_dirty        drain of the facts_dirty queue (covers deleted trips)

Derived rows are eventually consistent: a stale read is tolerated and heals
on the next refresh.
"""

import json
import logging
from typing import List, Optional

from sqlalchemy import delete, exists, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from tripdesk.core.config import settings
from tripdesk.core.errors import TripNotFoundError, classify_store_error
from tripdesk.core.monitoring import track_performance
from tripdesk.db.models import FactsDirty, Trip, TripComponent, TripFacts, TripSearchSurface, utcnow
from tripdesk.db.repositories import TripRepository
from tripdesk.db.upsert import upsert_stmt
from tripdesk.schemas.trips import FactsSummary, TripSnapshot, TripWithFacts
from tripdesk.services.dirty_tracking import SqlDirtyQueue, clear_markers, max_marker_id, pending_trip_ids
from tripdesk.services.search_surface import refresh_surface, traveler_roster
from tripdesk.services.semantic_indexer import SemanticIndexer
from tripdesk.services.surface_scorer import decode_json_list
from tripdesk.services.text_normalization import derive_name_from_email

logger = logging.getLogger(__name__)

LODGING_TYPES = ("hotel", "lodging")


# ============================================================================
# PURE COMPUTATION
# ============================================================================

def compute_nights(snapshot: TripSnapshot) -> int:
    day_numbers = [d.day_number for d in snapshot.days if d.day_number is not None]
    if day_numbers:
        return max(day_numbers) - min(day_numbers) + 1
    if snapshot.start_date and snapshot.end_date:
        return max((snapshot.end_date - snapshot.start_date).days, 0)
    return 0


def compute_transit_minutes(snapshot: TripSnapshot) -> int:
    total = 0.0
    for leg in snapshot.legs:
        if leg.depart_datetime and leg.arrive_datetime and leg.arrive_datetime > leg.depart_datetime:
            total += (leg.arrive_datetime - leg.depart_datetime).total_seconds() / 60
    return int(round(total))


def compute_roster(snapshot: TripSnapshot):
    """Deduplicated (names, emails) including the primary client."""
    names, emails = traveler_roster(snapshot)
    seen = {e.lower() for e in emails}
    if snapshot.primary_client_email and snapshot.primary_client_email.lower() not in seen:
        emails.append(snapshot.primary_client_email)
        primary_name = snapshot.primary_client_name or derive_name_from_email(snapshot.primary_client_email)
        if primary_name:
            names.append(primary_name)

    unique_names: List[str] = []
    for name in names:
        if name not in unique_names:
            unique_names.append(name)
    unique_emails: List[str] = []
    for email in emails:
        if email.lower() not in [e.lower() for e in unique_emails]:
            unique_emails.append(email)
    return unique_names, unique_emails


def compute_facts(snapshot: TripSnapshot) -> dict:
    """Aggregate values for a trip (everything except version/last_computed)."""
    activity_cost = sum(a.cost or 0.0 for a in snapshot.activities)
    names, emails = compute_roster(snapshot)
    return {
        "trip_id": snapshot.trip_id,
        "total_nights": compute_nights(snapshot),
        "total_hotels": sum(1 for a in snapshot.activities if (a.activity_type or "").lower() in LODGING_TYPES),
        "total_activities": len(snapshot.activities),
        "total_cost": activity_cost if activity_cost > 0 else float(snapshot.total_cost or 0.0),
        "transit_minutes": compute_transit_minutes(snapshot),
        "traveler_count": len(emails),
        "traveler_names": json.dumps(names),
        "traveler_emails": json.dumps(emails),
        "primary_client_email": snapshot.primary_client_email,
        "primary_client_name": snapshot.primary_client_name or derive_name_from_email(snapshot.primary_client_email),
    }


def facts_summary(row: TripFacts) -> FactsSummary:
    return FactsSummary(
        trip_id=row.trip_id,
        total_nights=row.total_nights,
        total_hotels=row.total_hotels,
        total_activities=row.total_activities,
        total_cost=row.total_cost,
        transit_minutes=row.transit_minutes,
        traveler_count=row.traveler_count,
        traveler_names=decode_json_list(row.traveler_names),
        traveler_emails=decode_json_list(row.traveler_emails),
        primary_client_email=row.primary_client_email,
        primary_client_name=row.primary_client_name,
        version=row.version,
        last_computed=row.last_computed,
    )


# ============================================================================
# ENGINE
# ============================================================================

class FactsEngine:
    """Recomputes every derived row of a trip from one snapshot."""

    def __init__(
        self,
        db: Session,
        inline_max_activities: int = None,
        bulk_limit: int = None,
        dirty_batch_limit: int = None,
    ):
        self.db = db
        self.repository = TripRepository(db)
        self.indexer = SemanticIndexer(db)
        self.inline_max_activities = (
            inline_max_activities if inline_max_activities is not None else settings.facts_inline_max_activities
        )
        self.bulk_limit = bulk_limit or settings.facts_bulk_limit
        self.dirty_batch_limit = dirty_batch_limit or settings.dirty_batch_limit

    # ------------------------------------------------------------------
    # Recompute
    # ------------------------------------------------------------------

    def _write_facts(self, values: dict) -> None:
        table = TripFacts.__table__
        dialect = self.db.get_bind().dialect.name
        row = dict(values, version=1, last_computed=utcnow())
        update_columns = {k: v for k, v in row.items() if k not in ("trip_id", "version")}
        update_columns["version"] = table.c.version + 1
        self.db.execute(upsert_stmt(dialect, table, row, ["trip_id"], update_columns=update_columns))

    def _purge_derived(self, trip_id: int) -> None:
        for model in (TripFacts, TripSearchSurface, TripComponent):
            self.db.execute(delete(model).where(model.trip_id == trip_id))

    def _recompute(self, trip_id: int) -> Optional[TripSnapshot]:
        """Rewrite facts, surface and components for one trip. No commit."""
        self.db.flush()
        snapshot = self.repository.load_snapshot(trip_id)
        if snapshot is None:
            self._purge_derived(trip_id)
            logger.info(f"Trip {trip_id} no longer exists, derived rows removed")
            return None

        self._write_facts(compute_facts(snapshot))
        refresh_surface(self.db, trip_id, snapshot=snapshot)
        self.indexer.refresh_components(trip_id, snapshot=snapshot)
        return snapshot

    def _refresh_one(self, trip_id: int, up_to_id: Optional[int]) -> None:
        try:
            self._recompute(trip_id)
            clear_markers(self.db, [trip_id], up_to_id)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise classify_store_error(e) from e

    @track_performance("recompute_trip", slow_ms=500.0)
    def recompute_trip(self, trip_id: int) -> Optional[FactsSummary]:
        """Unconditional refresh of one trip; returns the new facts (None if trip is gone)."""
        self._refresh_one(trip_id, max_marker_id(self.db))
        row = self.repository.get_facts(trip_id)
        if row is None:
            return None
        self.db.refresh(row)
        return facts_summary(row)

    # ------------------------------------------------------------------
    # Freshness
    # ------------------------------------------------------------------

    def is_dirty(self, trip: Trip) -> bool:
        facts = self.repository.get_facts(trip.trip_id)
        if facts is None:
            return True
        if trip.updated_at and facts.last_computed and facts.last_computed < trip.updated_at:
            return True
        return self.repository.has_dirty_marker(trip.trip_id)

    def ensure_facts_fresh(self, trip_id: int) -> bool:
        """
        True when facts are current on return (already fresh, or refreshed inline).
        False for unknown trips and for large dirty trips, which are queued instead.
        """
        try:
            trip = self.db.get(Trip, trip_id)
            if trip is None:
                logger.warning(f"ensure_facts_fresh: trip {trip_id} not found")
                return False
            if not self.is_dirty(trip):
                return True

            activities = self.repository.activity_count(trip_id)
            if activities > self.inline_max_activities:
                if not self.repository.has_dirty_marker(trip_id):
                    SqlDirtyQueue(self.db).enqueue(trip_id, "deferred_refresh")
                    self.db.commit()
                logger.info(
                    f"Trip {trip_id} has {activities} activities, facts refresh deferred",
                    extra={"trip_id": trip_id},
                )
                return False
        except SQLAlchemyError as e:
            self.db.rollback()
            raise classify_store_error(e) from e

        self._refresh_one(trip_id, max_marker_id(self.db))
        logger.info(f"Facts refreshed inline for trip {trip_id}", extra={"trip_id": trip_id})
        return True

    def get_trip_with_facts(self, trip_id: int) -> TripWithFacts:
        fresh = self.ensure_facts_fresh(trip_id)
        snapshot = self.repository.load_snapshot(trip_id)
        if snapshot is None:
            raise TripNotFoundError(trip_id)
        row = self.repository.get_facts(trip_id)
        return TripWithFacts(trip=snapshot, facts=facts_summary(row) if row else None, fresh=fresh)

    # ------------------------------------------------------------------
    # Batch
    # ------------------------------------------------------------------

    def stale_trip_ids(self, limit: int) -> List[int]:
        """Trips with missing or outdated facts, or a dirty marker; oldest update first."""
        has_marker = exists().where(FactsDirty.trip_id == Trip.trip_id)
        stmt = (
            select(Trip.trip_id)
            .outerjoin(TripFacts, TripFacts.trip_id == Trip.trip_id)
            .where(or_(TripFacts.trip_id.is_(None), TripFacts.last_computed < Trip.updated_at, has_marker))
            .order_by(Trip.updated_at.asc(), Trip.trip_id.asc())
            .limit(limit)
        )
        return list(self.db.execute(stmt).scalars().all())

    @track_performance("bulk_refresh_facts", slow_ms=5000.0)
    def bulk_refresh_facts(self, limit: int = None) -> int:
        limit = limit or self.bulk_limit
        up_to_id = max_marker_id(self.db)
        trip_ids = self.stale_trip_ids(limit)
        for trip_id in trip_ids:
            self._refresh_one(trip_id, up_to_id)
        logger.info(f"Bulk facts refresh processed {len(trip_ids)} trips", extra={"processed": len(trip_ids)})
        return len(trip_ids)

    @track_performance("refresh_dirty", slow_ms=5000.0)
    def refresh_dirty(self, limit: int = None) -> int:
        limit = limit or self.dirty_batch_limit
        up_to_id = max_marker_id(self.db)
        if up_to_id is None:
            return 0
        trip_ids = pending_trip_ids(self.db, limit)
        for trip_id in trip_ids:
            self._refresh_one(trip_id, up_to_id)
        logger.info(f"Dirty queue drained for {len(trip_ids)} trips", extra={"processed": len(trip_ids)})
        return len(trip_ids)
