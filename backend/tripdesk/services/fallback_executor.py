"""
Progressive Fallback Executor
Runs search tiers from most to least specific:

  primary    weighted / comprehensive / simplified predicates on trip_search_surface
  secondary  trips.trip_name on a single primary term
  emergency  clients.email / clients.full_name on the primary term
  exhausted  structured NoResults with a suggestion

Complexity/timeout errors and empty results advance to the next attempt.
Any other store error is raised as StoreDataError.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional, Sequence

from sqlalchemy import or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from tripdesk.core.config import settings
from tripdesk.core.errors import TripDeskError, classify_store_error, is_complexity_error
from tripdesk.db.models import Client, Trip, TripSearchSurface
from tripdesk.schemas.search import ClassifiedTerm, NoResults
from tripdesk.services.query_builder import QueryStrategy, build_strategies, like_clause
from tripdesk.services.term_classifier import normalize_search_term

logger = logging.getLogger(__name__)

# Imperative / filler words never used as the single fallback term
PRIMARY_TERM_SKIP_WORDS = frozenset([
    "create", "new", "all", "show", "get", "find", "me", "my", "list", "the",
    "a", "an", "for", "of", "please", "display", "give",
])

NO_RESULTS_SUGGESTION = "Use specific trip names or client emails for best results"

# Surface columns, primary first. The first two are the "targeted" columns.
SURFACE_COLUMNS = (
    TripSearchSurface.search_tokens,
    TripSearchSurface.normalized_trip_name,
    TripSearchSurface.trip_name,
    TripSearchSurface.destinations,
    TripSearchSurface.primary_client_name,
    TripSearchSurface.primary_client_email,
    TripSearchSurface.traveler_names,
    TripSearchSurface.traveler_emails,
    TripSearchSurface.phonetic_tokens,
)
SURFACE_EXACT_COLUMNS = (TripSearchSurface.primary_client_email,)


@dataclass
class FallbackTier:
    name: str
    runner: Callable[[], Sequence[Any]]
    strategy: Optional[str] = None

    @property
    def label(self) -> str:
        return f"{self.name}:{self.strategy}" if self.strategy else self.name


@dataclass
class FallbackResult:
    tier: str
    strategy: Optional[str] = None
    rows: List[Any] = field(default_factory=list)
    primary_term: Optional[str] = None
    elapsed_ms: float = 0.0
    suggestion: Optional[str] = None
    message: Optional[str] = None
    attempts: List[str] = field(default_factory=list)

    @property
    def exhausted(self) -> bool:
        return self.tier == "exhausted"

    def to_no_results(self, query: str) -> NoResults:
        return NoResults(query=query, suggestion=self.suggestion or NO_RESULTS_SUGGESTION, attempts=self.attempts)


def extract_primary_term(query: str) -> str:
    """
    First meaningful word of a command-style query.
    'show me all Hawaii trips' -> 'hawaii'
    """
    words = [w for w in normalize_search_term(query or "").split() if len(w) >= 2]
    for word in words:
        if word not in PRIMARY_TERM_SKIP_WORDS:
            return word
    if words:
        return words[0]
    return (query or "").strip().lower()


def no_results_message(query: str) -> str:
    return (
        f'No results found for "{query}". Try specific terms like: '
        'trip names (e.g. "Paris Honeymoon"), client names or emails, '
        'or single keywords like "planning" or "confirmed".'
    )


class ProgressiveFallbackExecutor:
    """
    Executes FallbackTiers in order and returns the first one with rows.
    db may be None when driving the executor with in-memory runners.
    """

    def __init__(
        self,
        db: Optional[Session] = None,
        soft_budget_ms: float = None,
        candidate_limit: int = None,
        secondary_limit: int = None,
        emergency_limit: int = None,
    ):
        self.db = db
        self.soft_budget_ms = soft_budget_ms if soft_budget_ms is not None else settings.fallback_soft_budget_ms
        self.candidate_limit = candidate_limit or settings.search_candidate_limit
        self.secondary_limit = secondary_limit or settings.fallback_secondary_limit
        self.emergency_limit = emergency_limit or settings.fallback_emergency_limit

    # ==================================================================
    # GENERIC EXECUTION
    # ==================================================================

    def execute(self, tiers: Sequence[FallbackTier], query: str = "", primary_term: Optional[str] = None) -> FallbackResult:
        attempts: List[str] = []
        started = time.perf_counter()

        for tier in tiers:
            tier_start = time.perf_counter()
            try:
                rows = list(tier.runner())
            except (SQLAlchemyError, TripDeskError) as e:
                elapsed = (time.perf_counter() - tier_start) * 1000
                if not is_complexity_error(e):
                    raise classify_store_error(e) from e
                logger.warning(
                    f"Tier {tier.label} hit engine complexity limit after {elapsed:.0f}ms, degrading: {e}",
                    extra={"tier": tier.name, "duration_ms": round(elapsed, 1)},
                )
                attempts.append(f"{tier.label}: complexity")
                self._reset_transaction()
                continue

            elapsed = (time.perf_counter() - tier_start) * 1000
            if elapsed > self.soft_budget_ms:
                logger.warning(
                    f"Tier {tier.label} took {elapsed:.0f}ms (near timeout, budget {self.soft_budget_ms:.0f}ms)",
                    extra={"tier": tier.name, "duration_ms": round(elapsed, 1)},
                )

            if not rows:
                attempts.append(f"{tier.label}: empty")
                continue

            attempts.append(f"{tier.label}: {len(rows)} rows")
            logger.info(f"Search tier {tier.label} succeeded with {len(rows)} rows for '{query}'")
            return FallbackResult(
                tier=tier.name,
                strategy=tier.strategy,
                rows=rows,
                primary_term=primary_term,
                elapsed_ms=round((time.perf_counter() - started) * 1000, 1),
                attempts=attempts,
            )

        logger.info(f"All search tiers exhausted for '{query}'")
        return FallbackResult(
            tier="exhausted",
            primary_term=primary_term,
            elapsed_ms=round((time.perf_counter() - started) * 1000, 1),
            suggestion=NO_RESULTS_SUGGESTION,
            message=no_results_message(query),
            attempts=attempts,
        )

    def _reset_transaction(self) -> None:
        # PostgreSQL aborts the whole transaction after a statement timeout
        if self.db is not None:
            self.db.rollback()

    # ==================================================================
    # STORE TIERS
    # ==================================================================

    def _surface_runner(self, strategy: QueryStrategy) -> Callable[[], List[TripSearchSurface]]:
        def run():
            stmt = (
                select(TripSearchSurface)
                .where(strategy.predicate)
                .order_by(TripSearchSurface.last_synced.desc(), TripSearchSurface.trip_id.asc())
                .limit(self.candidate_limit)
            )
            return self.db.execute(stmt).scalars().all()
        return run

    def _trips_runner(self, term: str) -> Callable[[], List[Trip]]:
        def run():
            stmt = (
                select(Trip)
                .where(like_clause(Trip.trip_name, term))
                .order_by(Trip.updated_at.desc(), Trip.trip_id.asc())
                .limit(self.secondary_limit)
            )
            return self.db.execute(stmt).scalars().all()
        return run

    def _clients_runner(self, term: str) -> Callable[[], List[Client]]:
        def run():
            stmt = (
                select(Client)
                .where(or_(like_clause(Client.email, term), like_clause(Client.full_name, term)))
                .order_by(Client.updated_at.desc(), Client.client_id.asc())
                .limit(self.emergency_limit)
            )
            return self.db.execute(stmt).scalars().all()
        return run

    def build_tiers(self, terms: Sequence[ClassifiedTerm], primary_term: str) -> List[FallbackTier]:
        tiers = [
            FallbackTier(name="primary", strategy=s.name, runner=self._surface_runner(s))
            for s in build_strategies(terms, SURFACE_COLUMNS, SURFACE_EXACT_COLUMNS)
        ]
        if primary_term:
            tiers.append(FallbackTier(name="secondary", strategy="trip_name", runner=self._trips_runner(primary_term)))
            tiers.append(FallbackTier(name="emergency", strategy="client", runner=self._clients_runner(primary_term)))
        return tiers

    def search(self, query: str, terms: Sequence[ClassifiedTerm]) -> FallbackResult:
        """Run every store tier for a classified query."""
        if self.db is None:
            raise ValueError("search() needs a database session")
        primary_term = extract_primary_term(query)
        return self.execute(self.build_tiers(terms, primary_term), query=query, primary_term=primary_term)
