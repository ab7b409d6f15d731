"""
Semantic Component Indexer
Breaks trips into weighted, typed components (client, destination, date,
cost, status, descriptor) and answers natural-language queries by matching
query components against them.

Component weights:
  client 2.0 | destination 1.5 | year 1.3 | descriptor 1.3 (title) / 1.1 (notes)
  month 1.2 | status 1.2 | cost 1.1 | activity 1.0
"""

import json
import logging
import re
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from sqlalchemy import and_, delete, insert, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from tripdesk.core.config import settings
from tripdesk.core.errors import classify_store_error
from tripdesk.core.monitoring import track_performance
from tripdesk.db.models import Trip, TripComponent, utcnow
from tripdesk.db.repositories import TripRepository
from tripdesk.schemas.search import SemanticComponentMatch, SemanticMatch
from tripdesk.schemas.trips import TripSnapshot
from tripdesk.services.query_builder import like_clause
from tripdesk.services.term_classifier import LOCATION_KEYWORDS, SEARCH_STOP_WORDS

logger = logging.getLogger(__name__)

# ============================================================================
# VOCABULARY
# ============================================================================

MONTH_NAMES = (
    "january", "february", "march", "april", "may", "june",
    "july", "august", "september", "october", "november", "december",
)

DESTINATION_SYNONYMS = {
    "hawaii": ["hawaiian islands", "aloha state", "pacific islands"],
    "mediterranean": ["med sea", "mediterranean sea", "med cruise"],
    "caribbean": ["carribean", "west indies", "caribbean islands"],
    "europe": ["european", "eu", "old continent"],
    "paris": ["city of light", "france capital"],
    "london": ["uk capital", "england capital", "britain"],
    "rome": ["eternal city", "italy capital", "roman"],
    "greece": ["greek islands", "hellenic", "greek"],
    "italy": ["italian", "italia"],
    "spain": ["spanish", "espana"],
    "iceland": ["icelandic", "reykjavik"],
    "norway": ["norwegian", "norge", "scandinavia"],
    "thailand": ["thai", "siam", "bangkok"],
    "japan": ["japanese", "nippon", "tokyo"],
}

STATUS_SYNONYMS = {
    "planning": ["draft", "in planning", "preliminary"],
    "confirmed": ["booked", "secured", "finalized"],
    "in_progress": ["ongoing", "active", "traveling", "current"],
    "completed": ["finished", "done", "past", "concluded"],
    "cancelled": ["canceled", "aborted", "scrapped"],
}

DESCRIPTOR_SYNONYMS = {
    "anniversary": ["celebration", "milestone", "special occasion"],
    "honeymoon": ["newlyweds", "romantic", "wedding trip"],
    "vacation": ["holiday", "getaway", "trip", "break"],
    "business": ["work", "corporate", "conference"],
    "family": ["relatives", "kids", "children", "parents"],
    "adventure": ["exciting", "thrilling", "active"],
    "relaxation": ["peaceful", "calm", "restful", "spa"],
    "cultural": ["heritage", "historical", "museums"],
    "cruise": ["ship", "sailing", "maritime", "ocean"],
}

DESCRIPTOR_PATTERNS = (
    re.compile(r"\b(anniversary|honeymoon|vacation|holiday|getaway|business|family|adventure|"
               r"relaxation|cultural|cruise|romantic|celebration|wedding)\b", re.IGNORECASE),
    re.compile(r"\b(luxury|budget|premium|deluxe|standard|economy|first-class|business-class)\b", re.IGNORECASE),
    re.compile(r"\b(group|solo|couple|couples|single|family|corporate)\b", re.IGNORECASE),
)

DESTINATION_INDICATORS = frozenset(LOCATION_KEYWORDS) | {
    "tokyo", "bangkok", "istanbul", "barcelona", "germany",
    "cruise", "island", "beach", "mountain", "city", "country",
}

TITLE_NAME_PAIR = re.compile(r"([A-Z][a-z]+)\s*(?:and|&)\s*([A-Z][a-z]+)")
QUERY_PROPER_NOUN = re.compile(r"\b[A-Z][a-z]+\b")
QUERY_YEAR = re.compile(r"\b(?:19|20)\d{2}\b")
QUERY_COST = re.compile(r"\$\d+|\b(?:budget|cheap|expensive|luxury|premium)\b", re.IGNORECASE)
QUERY_STATUS = re.compile(r"\b(?:planning|confirmed|completed|cancelled|active|ongoing)\b", re.IGNORECASE)
_WORD_STRIP = re.compile(r"[^a-z0-9$-]")

COMPONENT_WEIGHTS = {
    "client": 2.0,
    "destination": 1.5,
    "year": 1.3,
    "month": 1.2,
    "status": 1.2,
    "descriptor_title": 1.3,
    "descriptor_notes": 1.1,
    "cost": 1.1,
    "activity": 1.0,
    "query_word": 1.0,
}


@dataclass
class ExtractedComponent:
    component_type: str
    component_value: str
    search_weight: float
    synonyms: List[str] = field(default_factory=list)
    source: Optional[str] = None


@dataclass
class QueryComponent:
    component_type: str
    value: str
    weight: float


# ============================================================================
# EXTRACTION (pure)
# ============================================================================

def extract_descriptors(text: str) -> List[str]:
    found: List[str] = []
    for pattern in DESCRIPTOR_PATTERNS:
        for match in pattern.findall(text or ""):
            value = match.lower()
            if value not in found:
                found.append(value)
    return found


def cost_bucket(cost: float) -> str:
    if cost < 1000:
        return "budget"
    if cost < 5000:
        return "moderate"
    if cost < 10000:
        return "premium"
    return "luxury"


def _format_amount(amount: float) -> str:
    return str(int(amount)) if float(amount).is_integer() else str(amount)


def extract_trip_components(snapshot: TripSnapshot) -> List[ExtractedComponent]:
    components: List[ExtractedComponent] = []

    if snapshot.primary_client_email:
        prefix = snapshot.primary_client_email.split("@")[0].lower()
        components.append(ExtractedComponent(
            "client", prefix, COMPONENT_WEIGHTS["client"],
            [snapshot.primary_client_email.lower()], "primary_client_email",
        ))

    pair = TITLE_NAME_PAIR.search(snapshot.trip_name or "")
    if pair:
        for name in pair.groups():
            components.append(ExtractedComponent(
                "client", name.lower(), COMPONENT_WEIGHTS["client"], [name], "trip_name",
            ))

    for destination in re.split(r"[,;]", snapshot.destinations or ""):
        destination = destination.strip().lower()
        if destination:
            components.append(ExtractedComponent(
                "destination", destination, COMPONENT_WEIGHTS["destination"],
                DESTINATION_SYNONYMS.get(destination, []), "destinations",
            ))

    if snapshot.start_date:
        start = snapshot.start_date
        components.append(ExtractedComponent(
            "date", str(start.year), COMPONENT_WEIGHTS["year"], [start.isoformat()], "start_date",
        ))
        components.append(ExtractedComponent(
            "date", MONTH_NAMES[start.month - 1], COMPONENT_WEIGHTS["month"],
            [f"{start.month:02d}", f"{start.year}-{start.month:02d}"], "start_date",
        ))

    if snapshot.total_cost and snapshot.total_cost > 0:
        amount = _format_amount(snapshot.total_cost)
        components.append(ExtractedComponent(
            "cost", cost_bucket(snapshot.total_cost), COMPONENT_WEIGHTS["cost"],
            [amount, f"${amount}"], "total_cost",
        ))

    if snapshot.status:
        status = snapshot.status.lower()
        components.append(ExtractedComponent(
            "status", status, COMPONENT_WEIGHTS["status"], STATUS_SYNONYMS.get(status, []), "status",
        ))

    seen_activities = set()
    for activity in snapshot.activities:
        name = (activity.name or "").strip().lower()
        if not name or name in seen_activities:
            continue
        seen_activities.add(name)
        components.append(ExtractedComponent(
            "activity", name, COMPONENT_WEIGHTS["activity"],
            [activity.activity_type.lower()] if activity.activity_type else [], "activities",
        ))

    for descriptor in extract_descriptors(snapshot.trip_name):
        components.append(ExtractedComponent(
            "descriptor", descriptor, COMPONENT_WEIGHTS["descriptor_title"],
            DESCRIPTOR_SYNONYMS.get(descriptor, []), "trip_name",
        ))
    for descriptor in extract_descriptors(snapshot.notes):
        components.append(ExtractedComponent(
            "descriptor", descriptor, COMPONENT_WEIGHTS["descriptor_notes"],
            DESCRIPTOR_SYNONYMS.get(descriptor, []), "notes",
        ))

    return components


def is_likely_destination(word: str) -> bool:
    return any(indicator in word for indicator in DESTINATION_INDICATORS)


def extract_query_components(query: str) -> List[QueryComponent]:
    """Typed, weighted components of a natural-language query."""
    components: List[QueryComponent] = []

    def add(component_type: str, value: str, weight: float) -> None:
        if not any(c.component_type == component_type and c.value == value for c in components):
            components.append(QueryComponent(component_type, value, weight))

    for name in QUERY_PROPER_NOUN.findall(query):
        lowered = name.lower()
        if lowered in MONTH_NAMES or is_likely_destination(lowered) or lowered in SEARCH_STOP_WORDS:
            continue
        add("client", lowered, COMPONENT_WEIGHTS["client"])

    for year in QUERY_YEAR.findall(query):
        add("date", year, COMPONENT_WEIGHTS["year"])

    for cost in QUERY_COST.findall(query):
        add("cost", cost.lower().replace("$", ""), COMPONENT_WEIGHTS["cost"])

    for status in QUERY_STATUS.findall(query):
        add("status", status.lower(), COMPONENT_WEIGHTS["status"])

    for descriptor in extract_descriptors(query):
        add("descriptor", descriptor, COMPONENT_WEIGHTS["descriptor_title"])

    for raw in query.lower().split():
        word = _WORD_STRIP.sub("", raw)
        if len(word) <= 2:
            continue
        if word in MONTH_NAMES:
            add("date", word, COMPONENT_WEIGHTS["month"])
            continue
        if any(word in c.value for c in components):
            continue
        if is_likely_destination(word):
            add("destination", word, COMPONENT_WEIGHTS["destination"])
        elif word.isalpha() and word not in SEARCH_STOP_WORDS and word != "trips":
            add("client", word, COMPONENT_WEIGHTS["query_word"])

    return components


def _component_matches(component: TripComponent, query_component: QueryComponent) -> bool:
    if component.component_type != query_component.component_type:
        return False
    value = component.component_value.lower()
    wanted = query_component.value
    if wanted in value or value in wanted:
        return True
    return wanted in (component.synonyms or "").lower()


def semantic_score(query_components: List[QueryComponent], matched: List[TripComponent]) -> float:
    """Weighted coverage of the query plus a small multi-match bonus, capped at 1.0."""
    possible = sum(q.weight for q in query_components)
    if possible <= 0:
        return 0.0
    achieved = 0.0
    for query_component in query_components:
        hits = [c for c in matched if _component_matches(c, query_component)]
        if hits:
            achieved += query_component.weight * max(c.search_weight for c in hits)
    bonus = min(len(matched) * 0.1, 0.5)
    return min(achieved / possible + bonus, 1.0)


# ============================================================================
# PERSISTENCE & SEARCH
# ============================================================================

class SemanticIndexer:
    """Owns trip_components: full replace on reindex, read on search."""

    def __init__(self, db: Session):
        self.db = db
        self.repository = TripRepository(db)

    def write_components(self, trip_id: int, components: List[ExtractedComponent]) -> int:
        """Replace every component row for a trip. Caller owns the transaction."""
        self.db.execute(delete(TripComponent).where(TripComponent.trip_id == trip_id))
        if not components:
            return 0
        now = utcnow()
        rows = [
            {
                "trip_id": trip_id,
                "component_type": c.component_type,
                "component_value": c.component_value,
                "search_weight": c.search_weight,
                "synonyms": json.dumps(c.synonyms),
                "source": c.source,
                "created_at": now,
            }
            for c in components
        ]
        self.db.execute(insert(TripComponent), rows)
        return len(rows)

    def refresh_components(self, trip_id: int, snapshot: Optional[TripSnapshot] = None) -> int:
        if snapshot is None:
            snapshot = self.repository.load_snapshot(trip_id)
        if snapshot is None:
            self.db.execute(delete(TripComponent).where(TripComponent.trip_id == trip_id))
            return 0
        return self.write_components(trip_id, extract_trip_components(snapshot))

    @track_performance("reindex_components", slow_ms=500.0)
    def reindex_components(self, trip_id: int) -> int:
        """Re-extract and fully replace a trip's components; commits."""
        try:
            count = self.refresh_components(trip_id)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise classify_store_error(e) from e
        logger.info(f"Indexed {count} semantic components for trip {trip_id}", extra={"trip_id": trip_id})
        return count

    @track_performance("semantic_search", slow_ms=800.0)
    def semantic_search(self, query: str, max_results: int = None) -> List[SemanticMatch]:
        max_results = max_results or settings.semantic_max_results
        query_components = extract_query_components(query or "")
        if not query_components:
            return []

        conditions = [
            and_(
                TripComponent.component_type == q.component_type,
                or_(like_clause(TripComponent.component_value, q.value), like_clause(TripComponent.synonyms, q.value)),
            )
            for q in query_components
        ]
        try:
            rows = self.db.execute(select(TripComponent).where(or_(*conditions))).scalars().all()
            by_trip: Dict[int, List[TripComponent]] = defaultdict(list)
            for row in rows:
                by_trip[row.trip_id].append(row)
            names = dict(
                self.db.execute(select(Trip.trip_id, Trip.trip_name).where(Trip.trip_id.in_(list(by_trip)))).all()
            ) if by_trip else {}
        except SQLAlchemyError as e:
            raise classify_store_error(e) from e

        results = []
        for trip_id, matched in by_trip.items():
            details = []
            for component in matched:
                for q in query_components:
                    if _component_matches(component, q):
                        details.append(SemanticComponentMatch(
                            component_type=component.component_type,
                            component_value=component.component_value,
                            search_weight=component.search_weight,
                            query_value=q.value,
                        ))
                        break
            results.append(SemanticMatch(
                trip_id=trip_id,
                trip_name=names.get(trip_id),
                score=round(semantic_score(query_components, matched), 4),
                total_weight=round(sum(c.search_weight for c in matched), 4),
                matched_components=details,
            ))

        results.sort(key=lambda m: (-m.score, -m.total_weight, m.trip_id))
        logger.info(f"Semantic search '{query}': {len(query_components)} components, {len(results)} trips")
        return results[:max_results]
