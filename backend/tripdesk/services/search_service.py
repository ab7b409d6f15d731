"""
Trip Search Service
Entry points for agent-facing search:

  search(query)           classify -> identifier lookup -> tiered fallback -> score & rank
  semantic_search(query)  component-based ranking (see semantic_indexer)
"""

import logging
import time
from typing import Any, Iterable, List

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from tripdesk.core.config import settings
from tripdesk.core.errors import classify_store_error
from tripdesk.core.monitoring import track_performance
from tripdesk.db.models import Client, Trip, TripSearchSurface
from tripdesk.db.repositories import TripRepository
from tripdesk.schemas.search import SearchResponse, SemanticMatch, SurfaceRow
from tripdesk.services.fallback_executor import FallbackResult, ProgressiveFallbackExecutor
from tripdesk.services.search_surface import build_surface
from tripdesk.services.semantic_indexer import SemanticIndexer
from tripdesk.services.surface_scorer import (
    ScoringWeights,
    find_identifier_candidates,
    parse_query,
    rank_rows,
)
from tripdesk.services.term_classifier import (
    assess_query_complexity,
    classify_terms,
    create_search_variations,
    determine_search_strategy,
    optimize_search_query,
)

logger = logging.getLogger(__name__)


def _dedupe(ids: Iterable[int]) -> List[int]:
    seen: List[int] = []
    for trip_id in ids:
        if trip_id not in seen:
            seen.append(trip_id)
    return seen


class TripSearchService:
    """Request-scoped search over trips. One instance per session."""

    def __init__(self, db: Session, weights: ScoringWeights = None, executor: ProgressiveFallbackExecutor = None):
        self.db = db
        self.repository = TripRepository(db)
        self.weights = weights or ScoringWeights.from_settings()
        self.executor = executor or ProgressiveFallbackExecutor(db)
        self.candidate_limit = settings.search_candidate_limit

    # ==================================================================
    # CANDIDATES
    # ==================================================================

    def _identifier_candidates(self, query: str) -> List[int]:
        signals = parse_query(query)
        if not signals.has_identifiers:
            return []
        ids = find_identifier_candidates(self.db, signals, limit=self.candidate_limit)
        # Trips whose surface row has not been built yet
        ids += self.repository.existing_trip_ids(signals.numeric_ids)
        ids += self.repository.trip_ids_for_client_emails(signals.emails, limit=self.candidate_limit)
        return _dedupe(ids)

    def _trip_ids_from_rows(self, rows: Iterable[Any]) -> List[int]:
        ids: List[int] = []
        client_emails: List[str] = []
        for row in rows:
            if isinstance(row, (TripSearchSurface, Trip)):
                ids.append(row.trip_id)
            elif isinstance(row, Client):
                client_emails.append(row.email)
        if client_emails:
            ids += self.repository.trip_ids_for_client_emails(client_emails, limit=self.candidate_limit)
        return _dedupe(ids)

    def _surface_rows(self, trip_ids: List[int]) -> List[SurfaceRow]:
        stored = {row.trip_id: SurfaceRow.model_validate(row) for row in self.repository.get_surface_rows(trip_ids)}
        rows = []
        for trip_id in trip_ids:
            if trip_id in stored:
                rows.append(stored[trip_id])
                continue
            # Surface not built yet: project on the fly, the dirty queue will persist it
            snapshot = self.repository.load_snapshot(trip_id)
            if snapshot is not None:
                rows.append(build_surface(snapshot))
        return rows

    # ==================================================================
    # SEARCH
    # ==================================================================

    @track_performance("trip_search", slow_ms=800.0)
    def search(self, query: str, limit: int = None) -> SearchResponse:
        start = time.perf_counter()
        limit = limit or settings.search_default_limit
        query = (query or "").strip()
        terms = classify_terms(query)
        mode = determine_search_strategy(query)
        analysis = dict(
            complexity=assess_query_complexity(query),
            optimized_terms=optimize_search_query(query),
            variations=create_search_variations(query),
        )
        logger.debug(
            f"Search '{query}' is {analysis['complexity']}; variations: {', '.join(analysis['variations'])}"
        )

        try:
            identifier_ids = self._identifier_candidates(query)
        except SQLAlchemyError as e:
            raise classify_store_error(e) from e

        if mode == "exact" and identifier_ids:
            result = FallbackResult(tier="identifier", strategy="exact")
        else:
            result = self.executor.search(query, terms)

        try:
            candidate_ids = _dedupe(identifier_ids + self._trip_ids_from_rows(result.rows))[: self.candidate_limit]
            rows = self._surface_rows(candidate_ids)
        except SQLAlchemyError as e:
            raise classify_store_error(e) from e

        matches = rank_rows(rows, query, limit=limit, weights=self.weights)
        elapsed_ms = round((time.perf_counter() - start) * 1000, 1)

        if not matches:
            no_results = result.to_no_results(query)
            logger.info(f"Search '{query}' found nothing ({'; '.join(no_results.attempts)})")
            return SearchResponse(
                query=query,
                search_mode=mode,
                tier="exhausted",
                strategy=None,
                terms=terms,
                suggestion=no_results.suggestion,
                elapsed_ms=elapsed_ms,
                **analysis,
            )

        tier = result.tier if not result.exhausted else "identifier"
        logger.info(f"Search '{query}' -> {len(matches)} matches via {tier}/{result.strategy or '-'} in {elapsed_ms:.0f}ms")
        return SearchResponse(
            query=query,
            search_mode=mode,
            tier=tier,
            strategy=result.strategy if not result.exhausted else "exact",
            terms=terms,
            matches=matches,
            elapsed_ms=elapsed_ms,
            **analysis,
        )

    def semantic_search(self, query: str, max_results: int = None) -> List[SemanticMatch]:
        return SemanticIndexer(self.db).semantic_search(query, max_results=max_results)
