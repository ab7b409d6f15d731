"""
Search Surface Builder
Projects a TripSnapshot into a denormalized, pre-tokenized SurfaceRow and
keeps trip_search_surface in step with the source tables.
"""

import json
import logging
from typing import List, Optional

from sqlalchemy import delete
from sqlalchemy.orm import Session

from tripdesk.db.models import TripSearchSurface, utcnow
from tripdesk.db.repositories import TripRepository
from tripdesk.db.upsert import upsert_stmt
from tripdesk.schemas.search import SurfaceRow
from tripdesk.schemas.trips import TripSnapshot
from tripdesk.services.text_normalization import (
    derive_name_from_email,
    normalize_text,
    phonetic_tokens_for,
    tokenize_text,
)

logger = logging.getLogger(__name__)


def traveler_roster(snapshot: TripSnapshot):
    """(names, emails) for assigned travelers; names fall back to the email."""
    names: List[str] = []
    emails: List[str] = []
    for traveler in snapshot.travelers:
        name = traveler.name or derive_name_from_email(traveler.email)
        if name:
            names.append(name)
        if traveler.email:
            emails.append(traveler.email)
    return names, emails


def build_surface(snapshot: TripSnapshot, synced_at=None) -> SurfaceRow:
    """Pure projection: same snapshot in, same row out (apart from last_synced)."""
    traveler_names, traveler_emails = traveler_roster(snapshot)
    client_name = snapshot.primary_client_name or derive_name_from_email(snapshot.primary_client_email)

    sources: List[Optional[str]] = [
        snapshot.trip_name,
        snapshot.trip_slug.replace("-", " ") if snapshot.trip_slug else None,
        snapshot.destinations,
        snapshot.status,
        client_name,
        snapshot.primary_client_email,
        *traveler_names,
        *traveler_emails,
    ]
    tokens = set()
    for source in sources:
        tokens.update(tokenize_text(source))
    tokens.add(str(snapshot.trip_id))

    normalized_name = normalize_text(snapshot.trip_name)
    tokens.update(t for t in normalized_name.split(" ") if t)
    if not tokens and normalized_name:
        tokens.add(normalized_name)

    all_emails = [e for e in [snapshot.primary_client_email, *traveler_emails] if e]
    return SurfaceRow(
        trip_id=snapshot.trip_id,
        trip_name=snapshot.trip_name,
        trip_slug=snapshot.trip_slug,
        status=snapshot.status,
        start_date=snapshot.start_date.isoformat() if snapshot.start_date else None,
        end_date=snapshot.end_date.isoformat() if snapshot.end_date else None,
        destinations=snapshot.destinations,
        primary_client_name=client_name,
        primary_client_email=snapshot.primary_client_email,
        traveler_names=json.dumps(traveler_names),
        traveler_emails=json.dumps(traveler_emails),
        normalized_trip_name=normalized_name,
        normalized_destinations=normalize_text(snapshot.destinations),
        normalized_travelers=normalize_text(" ".join(traveler_names)),
        normalized_emails=normalize_text(" ".join(all_emails)),
        search_tokens=" ".join(sorted(tokens)),
        phonetic_tokens=" ".join(phonetic_tokens_for(tokens)),
        traveler_count=len({e.lower() for e in all_emails}),
        last_synced=synced_at or utcnow(),
    )


def write_surface(db: Session, row: SurfaceRow) -> None:
    """Single-statement upsert keyed on trip_id."""
    dialect = db.get_bind().dialect.name
    values = row.model_dump()
    db.execute(upsert_stmt(dialect, TripSearchSurface.__table__, values, ["trip_id"]))


def delete_surface(db: Session, trip_id: int) -> None:
    db.execute(delete(TripSearchSurface).where(TripSearchSurface.trip_id == trip_id))


def refresh_surface(db: Session, trip_id: int, snapshot: Optional[TripSnapshot] = None) -> Optional[SurfaceRow]:
    """
    Rebuild one trip's surface row. A vanished trip has its row removed.
    Caller owns the transaction.
    """
    if snapshot is None:
        snapshot = TripRepository(db).load_snapshot(trip_id)
    if snapshot is None:
        delete_surface(db, trip_id)
        logger.info(f"Removed search surface for deleted trip {trip_id}")
        return None

    row = build_surface(snapshot)
    write_surface(db, row)
    logger.debug(f"Search surface refreshed for trip {trip_id}: {len(row.search_tokens.split())} tokens")
    return row
