"""
Trip Surface Scorer
Scores SurfaceRows against a free-text query and ranks them.

Identifier signals (slug, trip id, email) dominate; each query token then
contributes at most once, from the strongest field it matches.
"""

import json
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, List, Optional, Set, Tuple

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from tripdesk.core.config import Settings, settings
from tripdesk.db.models import MAX_TRIP_ID, TripSearchSurface
from tripdesk.schemas.search import SurfaceRow, TripSurfaceMatch
from tripdesk.services.query_builder import like_clause

QUERY_EMAIL_PATTERN = re.compile(r"[a-z0-9._%+-]+@[a-z0-9.-]+\.[a-z]{2,}")
_TOKEN_SPLIT = re.compile(r"[^a-z0-9]+")


@dataclass(frozen=True)
class ScoringWeights:
    slug_exact: int = 160
    trip_id_exact: int = 140
    primary_email_exact: int = 120
    traveler_email: int = 80
    search_token: int = 22
    phonetic_token: int = 14
    normalized_trip_name: int = 12
    destination: int = 10
    traveler_name: int = 9
    email_token: int = 7
    primary_client_name: int = 6
    trip_name_partial: int = 6
    confirmed_status: int = 3
    traveler_count_cap: int = 5

    @classmethod
    def from_settings(cls, config: Settings = None) -> "ScoringWeights":
        config = config or settings
        return cls(
            slug_exact=config.score_slug_exact,
            trip_id_exact=config.score_trip_id_exact,
            primary_email_exact=config.score_primary_email_exact,
            traveler_email=config.score_traveler_email,
            search_token=config.score_search_token,
            phonetic_token=config.score_phonetic_token,
            normalized_trip_name=config.score_normalized_trip_name,
            destination=config.score_destination,
            traveler_name=config.score_traveler_name,
            email_token=config.score_email_token,
            primary_client_name=config.score_primary_client_name,
            trip_name_partial=config.score_trip_name_partial,
            confirmed_status=config.score_confirmed_status,
            traveler_count_cap=config.score_traveler_count_cap,
        )


@dataclass
class QuerySignals:
    raw: str
    tokens: List[str] = field(default_factory=list)
    emails: List[str] = field(default_factory=list)
    numeric_ids: List[int] = field(default_factory=list)
    slug_candidate: Optional[str] = None

    @property
    def has_identifiers(self) -> bool:
        return bool(self.emails or self.numeric_ids or self.slug_candidate)


def parse_query(query: str, max_tokens: int = None) -> QuerySignals:
    max_tokens = max_tokens or settings.search_max_query_tokens
    trimmed = (query or "").strip()
    lowered = trimmed.lower()
    tokens = [t for t in _TOKEN_SPLIT.split(lowered) if len(t) >= 2][:max_tokens]

    emails: List[str] = []
    for email in QUERY_EMAIL_PATTERN.findall(lowered):
        if email not in emails:
            emails.append(email)

    # long digit runs (booking refs, phone numbers) cannot be trip ids
    numeric_ids = [int(t) for t in tokens if t.isdigit() and 0 < int(t) <= MAX_TRIP_ID]
    slug_candidate = re.sub(r"\s+", "-", lowered) if lowered else None
    return QuerySignals(raw=trimmed, tokens=tokens, emails=emails, numeric_ids=numeric_ids, slug_candidate=slug_candidate)


def decode_json_list(value: Optional[str]) -> List[str]:
    if not value:
        return []
    try:
        parsed = json.loads(value)
    except (TypeError, ValueError):
        return []
    if not isinstance(parsed, list):
        return []
    return [v for v in parsed if isinstance(v, str)]


def score_row(row: SurfaceRow, signals: QuerySignals, weights: ScoringWeights) -> Tuple[int, List[str], List[str]]:
    """Returns (score, matched_tokens, reasons)."""
    score = 0
    matched: List[str] = []
    reasons: List[str] = []

    def hit(points: int, token: str, reason: str) -> None:
        nonlocal score
        score += points
        if token not in matched:
            matched.append(token)
        reasons.append(reason)

    search_tokens: Set[str] = set((row.search_tokens or "").split())
    phonetic_tokens: Set[str] = set((row.phonetic_tokens or "").split())
    normalized_name = row.normalized_trip_name or ""
    normalized_destinations = row.normalized_destinations or ""
    normalized_travelers = row.normalized_travelers or ""
    normalized_emails = row.normalized_emails or ""
    destinations = (row.destinations or "").lower()
    trip_name = (row.trip_name or "").lower()
    primary_name = (row.primary_client_name or "").lower()
    traveler_names = (row.traveler_names or "").lower()
    traveler_emails = (row.traveler_emails or "").lower()

    if signals.slug_candidate and row.trip_slug and signals.slug_candidate == row.trip_slug.lower():
        hit(weights.slug_exact, signals.slug_candidate, "slug_exact")

    for trip_id in signals.numeric_ids:
        if row.trip_id == trip_id:
            hit(weights.trip_id_exact, str(trip_id), "trip_id_exact")

    for email in signals.emails:
        if row.primary_client_email and row.primary_client_email.lower() == email:
            hit(weights.primary_email_exact, email, "primary_email_exact")
        elif email in traveler_emails:
            hit(weights.traveler_email, email, "traveler_email_match")

    for token in signals.tokens:
        if token in search_tokens:
            hit(weights.search_token, token, "token_match")
        elif token in phonetic_tokens:
            hit(weights.phonetic_token, token, "phonetic_match")
        elif token in normalized_name:
            hit(weights.normalized_trip_name, token, "normalized_trip_name")
        elif token in destinations or token in normalized_destinations:
            hit(weights.destination, token, "destination_match")
        elif token in normalized_travelers or token in traveler_names:
            hit(weights.traveler_name, token, "traveler_match")
        elif token in normalized_emails:
            hit(weights.email_token, token, "email_token")
        elif token in primary_name:
            hit(weights.primary_client_name, token, "primary_client_name")
        elif token in trip_name:
            hit(weights.trip_name_partial, token, "trip_name_partial")

    if (row.status or "").lower() == "confirmed":
        score += weights.confirmed_status
        reasons.append("confirmed_status")

    if row.traveler_count > 0:
        score += min(row.traveler_count, weights.traveler_count_cap)

    return score, matched, reasons


def _sort_key(item: Tuple[int, SurfaceRow]):
    score, row = item
    # last_synced desc with missing timestamps last, then trip_id asc
    synced = row.last_synced.timestamp() if isinstance(row.last_synced, datetime) else float("-inf")
    return (-score, -synced, row.trip_id)


def rank_rows(
    rows: Iterable[SurfaceRow],
    query: str,
    limit: int = None,
    weights: ScoringWeights = None,
) -> List[TripSurfaceMatch]:
    """Score every row, order deterministically and cap at limit."""
    limit = limit or settings.search_default_limit
    weights = weights or ScoringWeights.from_settings()
    signals = parse_query(query)
    if not signals.raw:
        return []

    scored = []
    details = {}
    for row in rows:
        score, matched, reasons = score_row(row, signals, weights)
        scored.append((score, row))
        details[row.trip_id] = (matched, reasons)

    scored.sort(key=_sort_key)

    matches = []
    for score, row in scored[:limit]:
        matched, reasons = details[row.trip_id]
        matches.append(TripSurfaceMatch(
            trip_id=row.trip_id,
            trip_name=row.trip_name,
            trip_slug=row.trip_slug,
            status=row.status,
            start_date=row.start_date,
            destinations=row.destinations,
            primary_client_name=row.primary_client_name,
            primary_client_email=row.primary_client_email,
            score=score,
            matched_tokens=matched,
            reasons=reasons,
        ))
    return matches


def find_identifier_candidates(db: Session, signals: QuerySignals, limit: int = None) -> List[int]:
    """Trip ids that match the query's slug, numeric id or email exactly."""
    limit = limit or settings.search_candidate_limit
    clauses = []
    if signals.slug_candidate:
        clauses.append(func.lower(TripSearchSurface.trip_slug) == signals.slug_candidate)
    if signals.numeric_ids:
        clauses.append(TripSearchSurface.trip_id.in_(signals.numeric_ids))
    for email in signals.emails:
        clauses.append(func.lower(TripSearchSurface.primary_client_email) == email)
        clauses.append(like_clause(TripSearchSurface.traveler_emails, email))
    if not clauses:
        return []

    stmt = (
        select(TripSearchSurface.trip_id)
        .where(or_(*clauses))
        .order_by(TripSearchSurface.last_synced.desc(), TripSearchSurface.trip_id.asc())
        .limit(limit)
    )
    return list(db.execute(stmt).scalars().all())
