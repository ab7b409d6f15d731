"""Predicate strategies: shape, escaping and execution against SQLite."""
from sqlalchemy import select
from sqlalchemy.dialects import sqlite

from tripdesk.db.models import TripSearchSurface
from tripdesk.schemas.search import ClassifiedTerm
from tripdesk.services.fallback_executor import SURFACE_COLUMNS, SURFACE_EXACT_COLUMNS
from tripdesk.services.query_builder import (
    build_comprehensive,
    build_simplified,
    build_strategies,
    build_weighted,
    like_clause,
)
from tripdesk.services.term_classifier import classify_terms


def _run(session, strategy):
    stmt = select(TripSearchSurface.trip_id).where(strategy.predicate).order_by(TripSearchSurface.trip_id)
    return list(session.execute(stmt).scalars().all())


def test_strategy_order_for_short_queries():
    terms = classify_terms("bristol 2025")
    names = [s.name for s in build_strategies(terms, SURFACE_COLUMNS)]
    assert names == ["weighted", "comprehensive", "simplified"]


def test_comprehensive_skipped_for_three_terms_or_after_failure():
    terms = classify_terms("Sara bristol 2025")
    assert [s.name for s in build_strategies(terms, SURFACE_COLUMNS)] == ["weighted", "simplified"]

    two = classify_terms("bristol 2025")
    names = [s.name for s in build_strategies(two, SURFACE_COLUMNS, comprehensive_failed=True)]
    assert names == ["weighted", "simplified"]


def test_no_terms_no_strategies():
    assert build_strategies([], SURFACE_COLUMNS) == []


def test_like_clause_binds_escaped_pattern():
    compiled = like_clause(TripSearchSurface.trip_name, "100%_OFF").compile(dialect=sqlite.dialect())
    assert "%100\\%\\_off%" in compiled.params.values()
    assert "ESCAPE" in str(compiled)


def test_weighted_clause_counts():
    terms = [
        ClassifiedTerm(term="sara.jones@email.com", weight=3.0, category="email"),
        ClassifiedTerm(term="bristol", weight=1.5, category="location"),
        ClassifiedTerm(term="trips", weight=1.0, category="generic"),
    ]
    strategy = build_weighted(terms, SURFACE_COLUMNS, SURFACE_EXACT_COLUMNS)
    # high: 1 x 9 columns, medium: 1 x 2 columns, low: 1, email equality: 1
    assert strategy.clause_count == 9 + 2 + 1 + 1
    assert strategy.exact_terms == ["sara.jones@email.com"]


def test_weighted_email_matches(session, trips):
    strategy = build_weighted(classify_terms("john@example.com"), SURFACE_COLUMNS, SURFACE_EXACT_COLUMNS)
    assert _run(session, strategy) == [trips["hawaii"]]


def test_weighted_without_terms_matches_nothing(session, trips):
    assert _run(session, build_weighted([], SURFACE_COLUMNS)) == []


def test_comprehensive_requires_every_term(session, trips):
    assert _run(session, build_comprehensive(["bristol", "2025"], SURFACE_COLUMNS)) == [trips["sara"]]
    both = _run(session, build_comprehensive(["bristol"], SURFACE_COLUMNS))
    assert sorted(both) == sorted([trips["sara"], trips["bristol"]])


def test_simplified_uses_primary_column_only(session, trips):
    found = _run(session, build_simplified(["maui", "venice"], SURFACE_COLUMNS))
    assert sorted(found) == sorted([trips["hawaii"], trips["cruise"]])
