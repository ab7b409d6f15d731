"""
Derived-facts routes: trip reads with fresh facts, and explicit refresh triggers.
"""

from fastapi import APIRouter, Depends, HTTPException, Path, Query, Request
from sqlalchemy.orm import Session
import logging

from tripdesk.core.errors import TripNotFoundError
from tripdesk.core.rate_limiting import limiter, FACTS_LIMIT, BULK_REFRESH_LIMIT
from tripdesk.db.database import get_db
from tripdesk.db.models import MAX_TRIP_ID
from tripdesk.db.repositories import TripRepository
from tripdesk.schemas.trips import TripWithFacts
from tripdesk.services.facts_engine import FactsEngine
from tripdesk.services.semantic_indexer import SemanticIndexer

logger = logging.getLogger(__name__)

router = APIRouter(tags=["facts"])


@router.get("/trips/{trip_id}", response_model=TripWithFacts)
@limiter.limit(FACTS_LIMIT)
def get_trip(request: Request, trip_id: int = Path(..., ge=1, le=MAX_TRIP_ID), db: Session = Depends(get_db)):
    """Trip snapshot with its derived facts, refreshed inline when small and stale."""
    try:
        return FactsEngine(db).get_trip_with_facts(trip_id)
    except TripNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.post("/trips/{trip_id}/facts/ensure")
@limiter.limit(FACTS_LIMIT)
def ensure_facts(request: Request, trip_id: int = Path(..., ge=1, le=MAX_TRIP_ID), db: Session = Depends(get_db)):
    if not TripRepository(db).trip_exists(trip_id):
        raise HTTPException(status_code=404, detail=f"Trip {trip_id} not found")
    fresh = FactsEngine(db).ensure_facts_fresh(trip_id)
    return {"trip_id": trip_id, "fresh": fresh, "deferred": not fresh}


@router.post("/facts/refresh")
@limiter.limit(BULK_REFRESH_LIMIT)
def bulk_refresh(
    request: Request,
    limit: int = Query(None, ge=1, le=500, description="Maximum trips to refresh (default from settings)"),
    db: Session = Depends(get_db),
):
    """Recompute facts for trips that are missing, stale or marked dirty."""
    processed = FactsEngine(db).bulk_refresh_facts(limit)
    return {"processed": processed}


@router.post("/facts/refresh-dirty")
@limiter.limit(BULK_REFRESH_LIMIT)
def refresh_dirty(
    request: Request,
    limit: int = Query(None, ge=1, le=500, description="Maximum dirty trips to drain"),
    db: Session = Depends(get_db),
):
    processed = FactsEngine(db).refresh_dirty(limit)
    return {"processed": processed, "remaining": TripRepository(db).count_dirty()}


@router.post("/trips/{trip_id}/components/reindex")
@limiter.limit(FACTS_LIMIT)
def reindex_components(request: Request, trip_id: int = Path(..., ge=1, le=MAX_TRIP_ID), db: Session = Depends(get_db)):
    """Fully replace a trip's semantic components."""
    if not TripRepository(db).trip_exists(trip_id):
        raise HTTPException(status_code=404, detail=f"Trip {trip_id} not found")
    count = SemanticIndexer(db).reindex_components(trip_id)
    return {"trip_id": trip_id, "components": count}
