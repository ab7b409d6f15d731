"""
Trip search routes.
Thin HTTP layer over TripSearchService.
"""

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session
from typing import List
import logging

from tripdesk.core.config import settings
from tripdesk.core.rate_limiting import limiter, SEARCH_LIMIT
from tripdesk.db.database import get_db
from tripdesk.schemas.search import SearchResponse, SemanticMatch
from tripdesk.services.search_service import TripSearchService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["search"])


@router.get("/trips/search", response_model=SearchResponse)
@limiter.limit(SEARCH_LIMIT)
def search_trips(
    request: Request,
    q: str = Query(..., min_length=1, max_length=500, description="Trip name, client name/email, slug, id or keywords"),
    limit: int = Query(settings.search_default_limit, ge=1, le=50, description="Maximum matches to return"),
    db: Session = Depends(get_db),
):
    """
    Ranked trip search with progressive fallback.
    Never fails on query complexity; an empty result carries a suggestion.
    """
    return TripSearchService(db).search(q, limit=limit)


@router.get("/trips/semantic-search", response_model=List[SemanticMatch])
@limiter.limit(SEARCH_LIMIT)
def semantic_search_trips(
    request: Request,
    q: str = Query(..., min_length=1, max_length=500, description="Natural-language description of the trip"),
    max_results: int = Query(settings.semantic_max_results, ge=1, le=100),
    db: Session = Depends(get_db),
):
    """Component-based search (clients, destinations, dates, status, descriptors)."""
    return TripSearchService(db).semantic_search(q, max_results=max_results)
