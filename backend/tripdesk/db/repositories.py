"""
Repository pattern for data access.
Reads source trips into typed snapshots and fetches derived rows.
"""

from typing import Dict, Iterable, List, Optional

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session, selectinload
import logging

from tripdesk.db.models import (
    MAX_TRIP_ID,
    Client,
    FactsDirty,
    Trip,
    TripActivity,
    TripFacts,
    TripSearchSurface,
    TripTraveler,
)
from tripdesk.schemas.trips import (
    ActivityInfo,
    DayInfo,
    LegInfo,
    TravelerInfo,
    TripSnapshot,
)

logger = logging.getLogger(__name__)


class TripRepository:
    """
    Data access for trips and their derived caches.
    Errors propagate to the caller; the service layer classifies them.
    """

    def __init__(self, db: Session):
        self.db = db

    # ------------------------------------------------------------------
    # Source records
    # ------------------------------------------------------------------

    def get_trip(self, trip_id: int) -> Optional[Trip]:
        stmt = (
            select(Trip)
            .where(Trip.trip_id == trip_id)
            .options(
                selectinload(Trip.travelers),
                selectinload(Trip.days),
                selectinload(Trip.activities),
                selectinload(Trip.legs),
            )
            .execution_options(populate_existing=True)
        )
        return self.db.execute(stmt).scalars().first()

    def trip_exists(self, trip_id: int) -> bool:
        return self.db.execute(select(Trip.trip_id).where(Trip.trip_id == trip_id)).first() is not None

    def client_names(self, emails: Iterable[str]) -> Dict[str, str]:
        """email (lowercase) -> full_name for every known client."""
        wanted = {e.lower() for e in emails if e}
        if not wanted:
            return {}
        stmt = select(Client.email, Client.full_name).where(func.lower(Client.email).in_(wanted))
        return {email.lower(): name for email, name in self.db.execute(stmt).all() if name}

    def snapshot_from_trip(self, trip: Trip) -> TripSnapshot:
        emails = [t.client_email for t in trip.travelers]
        if trip.primary_client_email:
            emails.append(trip.primary_client_email)
        names = self.client_names(emails)

        primary_email = trip.primary_client_email
        status = trip.status.value if hasattr(trip.status, "value") else trip.status
        return TripSnapshot(
            trip_id=trip.trip_id,
            trip_name=trip.trip_name,
            trip_slug=trip.trip_slug,
            status=status or "planning",
            start_date=trip.start_date,
            end_date=trip.end_date,
            destinations=trip.destinations,
            primary_client_email=primary_email,
            primary_client_name=names.get(primary_email.lower()) if primary_email else None,
            total_cost=trip.total_cost,
            notes=trip.notes,
            updated_at=trip.updated_at,
            travelers=[
                TravelerInfo(email=t.client_email, name=names.get(t.client_email.lower()), role=t.role or "traveler")
                for t in trip.travelers
            ],
            days=[DayInfo.model_validate(d) for d in trip.days],
            activities=[ActivityInfo.model_validate(a) for a in trip.activities],
            legs=[LegInfo.model_validate(leg) for leg in trip.legs],
        )

    def load_snapshot(self, trip_id: int) -> Optional[TripSnapshot]:
        trip = self.get_trip(trip_id)
        if trip is None:
            return None
        return self.snapshot_from_trip(trip)

    def activity_count(self, trip_id: int) -> int:
        stmt = select(func.count(TripActivity.id)).where(TripActivity.trip_id == trip_id)
        return self.db.execute(stmt).scalar() or 0

    def trip_ids_for_client_emails(self, emails: Iterable[str], limit: int = 25) -> List[int]:
        """Trips where any of the emails is the primary client or an assigned traveler."""
        wanted = list({e.lower() for e in emails if e})
        if not wanted:
            return []
        assigned = select(TripTraveler.trip_id).where(func.lower(TripTraveler.client_email).in_(wanted))
        stmt = (
            select(Trip.trip_id)
            .where(or_(func.lower(Trip.primary_client_email).in_(wanted), Trip.trip_id.in_(assigned)))
            .order_by(Trip.updated_at.desc(), Trip.trip_id.asc())
            .limit(limit)
        )
        return list(self.db.execute(stmt).scalars().all())

    def existing_trip_ids(self, trip_ids: Iterable[int]) -> List[int]:
        ids = [i for i in trip_ids if 0 < i <= MAX_TRIP_ID]
        if not ids:
            return []
        return list(self.db.execute(select(Trip.trip_id).where(Trip.trip_id.in_(ids))).scalars().all())

    def count_trips(self) -> int:
        return self.db.execute(select(func.count(Trip.trip_id))).scalar() or 0

    # ------------------------------------------------------------------
    # Derived records
    # ------------------------------------------------------------------

    def get_facts(self, trip_id: int) -> Optional[TripFacts]:
        return self.db.get(TripFacts, trip_id)

    def get_surface_rows(self, trip_ids: Iterable[int]) -> List[TripSearchSurface]:
        ids = list(trip_ids)
        if not ids:
            return []
        stmt = select(TripSearchSurface).where(TripSearchSurface.trip_id.in_(ids))
        return list(self.db.execute(stmt).scalars().all())

    def has_dirty_marker(self, trip_id: int) -> bool:
        return self.db.execute(select(FactsDirty.id).where(FactsDirty.trip_id == trip_id).limit(1)).first() is not None

    def count_dirty(self) -> int:
        return self.db.execute(select(func.count(FactsDirty.id))).scalar() or 0
