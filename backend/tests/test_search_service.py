"""End-to-end trip search over the seeded store."""
import pytest
from sqlalchemy.exc import IntegrityError

from tripdesk.core.errors import StoreDataError
from tripdesk.db.models import TripSearchSurface
from tripdesk.services.fallback_executor import FallbackTier, ProgressiveFallbackExecutor
from tripdesk.services.search_service import TripSearchService
from tripdesk.services.surface_scorer import ScoringWeights

from conftest import add_trip


def test_email_search_ranks_client_trip_first(session, trips):
    response = TripSearchService(session).search("john@example.com")
    assert response.search_mode == "exact"
    assert response.tier == "identifier"
    top = response.matches[0]
    assert top.trip_id == trips["hawaii"]
    assert top.score >= 120
    assert "primary_email_exact" in top.reasons


def test_trip_id_search(session, trips):
    response = TripSearchService(session).search("trip-42")
    top = response.matches[0]
    assert top.trip_id == 42
    assert "trip_id_exact" in top.reasons
    assert top.score >= 140


def test_bare_trip_id_is_exact(session, trips):
    response = TripSearchService(session).search("42")
    assert response.search_mode == "exact"
    assert response.tier == "identifier"
    assert [m.trip_id for m in response.matches] == [42]


def test_slug_search(session, trips):
    slug = session.get(TripSearchSurface, trips["sara"]).trip_slug
    response = TripSearchService(session).search(slug)
    assert response.matches[0].trip_id == trips["sara"]
    assert "slug_exact" in response.matches[0].reasons


def test_sara_bristol_2025_beats_other_bristol_trip(session, trips):
    response = TripSearchService(session).search("sara bristol 2025")
    ranked = [m.trip_id for m in response.matches]
    assert ranked[0] == trips["sara"]
    assert trips["bristol"] in ranked
    assert ranked.index(trips["sara"]) < ranked.index(trips["bristol"])
    assert response.tier == "primary"


def test_command_query_finds_destination(session, trips):
    response = TripSearchService(session).search("show me all Hawaii trips")
    assert [t.term for t in response.terms] == ["hawaii"]
    assert response.matches[0].trip_id == trips["hawaii"]


def test_misspelled_surname(session, trips):
    response = TripSearchService(session).search("chisolm")
    assert response.matches[0].trip_id == 42
    assert "phonetic_match" in response.matches[0].reasons


def test_client_surname_finds_trip(session, trips):
    response = TripSearchService(session).search("garcia")
    assert [m.trip_id for m in response.matches] == [trips["bristol"]]


def test_nonsense_query_returns_suggestion(session, trips):
    response = TripSearchService(session).search("zzqxv")
    assert response.tier == "exhausted"
    assert response.matches == []
    assert response.suggestion


def test_limit(session, trips):
    assert len(TripSearchService(session).search("example", limit=2).matches) <= 2


def test_unsynced_trip_is_projected_on_the_fly(session, clients):
    trip_id = add_trip(session, "Lisbon Food Tour", destinations="Lisbon", primary_client_email="john@example.com")
    assert session.get(TripSearchSurface, trip_id) is None
    response = TripSearchService(session).search("john@example.com")
    assert [m.trip_id for m in response.matches] == [trip_id]


def test_custom_weights_change_scores(session, trips):
    service = TripSearchService(session, weights=ScoringWeights(primary_email_exact=500))
    assert service.search("john@example.com").matches[0].score >= 500


def test_store_errors_surface(session, trips):
    def broken():
        raise IntegrityError("SELECT ...", {}, Exception("no such column: trip_search_surface.bogus"))

    class BrokenExecutor(ProgressiveFallbackExecutor):
        def search(self, query, terms):
            return self.execute([FallbackTier(name="primary", runner=broken)], query=query)

    with pytest.raises(StoreDataError):
        TripSearchService(session, executor=BrokenExecutor(session)).search("hawaii")


def test_semantic_search_delegates(session, trips):
    results = TripSearchService(session).semantic_search("Hawaii vacation", max_results=1)
    assert [r.trip_id for r in results] == [trips["hawaii"]]


def test_long_numeric_reference_is_not_a_trip_id(session, trips):
    response = TripSearchService(session).search("12345678901234567890123")
    assert response.search_mode == "exact"
    assert response.tier == "exhausted"
    assert response.matches == []


def test_existing_trip_ids_skips_out_of_range_ids(session, trips):
    from tripdesk.db.repositories import TripRepository

    assert TripRepository(session).existing_trip_ids([42, 2**64, 0]) == [42]


def test_response_carries_query_analysis(session, trips):
    response = TripSearchService(session).search("Sara and Darren")
    assert response.complexity == "complex"
    assert response.variations[0] == "Sara and Darren"
    assert {"sara", "darren"} <= set(response.variations)
    assert response.optimized_terms == [t.term for t in response.terms]


def test_analysis_present_when_nothing_matches(session, trips):
    response = TripSearchService(session).search("zzqxv")
    assert response.complexity == "simple"
    assert response.variations[0] == "zzqxv"
