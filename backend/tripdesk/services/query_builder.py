"""
Query Strategy Builder
Turns classified terms into typed predicate strategies (SQLAlchemy boolean
expressions), ordered most -> least selective. Nothing here is string SQL;
every LIKE pattern is bound as a parameter with its wildcards escaped.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from sqlalchemy import and_, false, func, or_
from sqlalchemy.sql.elements import ColumnElement

from tripdesk.core.config import settings
from tripdesk.schemas.search import ClassifiedTerm
from tripdesk.services.term_classifier import escape_like

HIGH_WEIGHT = 2.0
MEDIUM_WEIGHT = 1.5


@dataclass
class QueryStrategy:
    """A named predicate plus the bookkeeping the executor logs."""
    name: str  # weighted | comprehensive | simplified
    predicate: ColumnElement
    terms: List[str]
    exact_terms: List[str] = field(default_factory=list)
    clause_count: int = 0


def like_clause(column, term: str) -> ColumnElement:
    """Case-insensitive substring match on a column."""
    pattern = f"%{escape_like(term.lower())}%"
    return func.lower(column).like(pattern, escape="\\")


def _any_column(columns: Sequence, term: str) -> ColumnElement:
    return or_(*[like_clause(col, term) for col in columns])


def build_comprehensive(terms: Sequence[str], columns: Sequence) -> QueryStrategy:
    """AND across terms of (OR across all columns)."""
    predicate = and_(*[_any_column(columns, t) for t in terms])
    return QueryStrategy(
        name="comprehensive",
        predicate=predicate,
        terms=list(terms),
        clause_count=len(terms) * len(columns),
    )


def build_simplified(terms: Sequence[str], columns: Sequence) -> QueryStrategy:
    """OR of terms against the primary column only."""
    primary = columns[0]
    predicate = or_(*[like_clause(primary, t) for t in terms])
    return QueryStrategy(name="simplified", predicate=predicate, terms=list(terms), clause_count=len(terms))


def build_weighted(
    terms: Sequence[ClassifiedTerm],
    columns: Sequence,
    exact_columns: Optional[Sequence] = None,
) -> QueryStrategy:
    """
    Weight-tiered predicate:
      >= 2.0       every column, AND-ed as one group
      [1.5, 2.0)   first two columns
      < 1.5        primary column only
    Groups are OR-ed. Email terms also get an equality branch on exact_columns.
    """
    high = [t for t in terms if t.weight >= HIGH_WEIGHT]
    medium = [t for t in terms if MEDIUM_WEIGHT <= t.weight < HIGH_WEIGHT]
    low = [t for t in terms if t.weight < MEDIUM_WEIGHT]
    emails = [t.term for t in terms if t.category == "email"]

    groups: List[ColumnElement] = []
    clause_count = 0

    if high:
        groups.append(and_(*[_any_column(columns, t.term) for t in high]))
        clause_count += len(high) * len(columns)

    if medium:
        primary_columns = columns[:2]
        groups.append(or_(*[_any_column(primary_columns, t.term) for t in medium]))
        clause_count += len(medium) * len(primary_columns)

    if low:
        groups.append(or_(*[like_clause(columns[0], t.term) for t in low]))
        clause_count += len(low)

    if emails and exact_columns:
        for col in exact_columns:
            groups.append(or_(*[func.lower(col) == email for email in emails]))
            clause_count += len(emails)

    predicate = or_(*groups) if groups else false()
    return QueryStrategy(
        name="weighted",
        predicate=predicate,
        terms=[t.term for t in terms],
        exact_terms=emails,
        clause_count=clause_count,
    )


def build_strategies(
    terms: Sequence[ClassifiedTerm],
    columns: Sequence,
    exact_columns: Optional[Sequence] = None,
    comprehensive_failed: bool = False,
) -> List[QueryStrategy]:
    """
    Strategies ordered most -> least selective. Term count is bounded by
    settings.search_max_terms before any predicate is built.
    """
    if not terms or not columns:
        return []

    bounded = list(terms)[: settings.search_max_terms]
    plain = [t.term for t in bounded]

    strategies = [build_weighted(bounded, columns, exact_columns)]
    if len(plain) <= 2 and not comprehensive_failed:
        strategies.append(build_comprehensive(plain, columns))
    strategies.append(build_simplified(plain, columns))
    return strategies
