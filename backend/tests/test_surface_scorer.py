"""Surface scoring signals and deterministic ranking."""
from datetime import date, datetime

from tripdesk.schemas.search import SurfaceRow
from tripdesk.schemas.trips import TravelerInfo, TripSnapshot
from tripdesk.services.search_surface import build_surface
from tripdesk.services.surface_scorer import (
    ScoringWeights,
    decode_json_list,
    parse_query,
    rank_rows,
    score_row,
)

WEIGHTS = ScoringWeights()


def _row(trip_id=1, **overrides):
    snapshot = TripSnapshot(
        trip_id=trip_id,
        trip_name=overrides.pop("trip_name", "Chisholm Mediterranean Cruise"),
        trip_slug=overrides.pop("trip_slug", "chrischisholm-mediterranean-2026"),
        status=overrides.pop("status", "planning"),
        start_date=date(2026, 5, 20),
        destinations="Mediterranean, Rome, Venice",
        primary_client_email="chris.chisholm@example.com",
        primary_client_name="Chris Chisholm",
        travelers=[
            TravelerInfo(email="chris.chisholm@example.com", name="Chris Chisholm"),
            TravelerInfo(email="stephanie.stoneleigh@example.com", name="Stephanie Stoneleigh"),
        ],
    )
    return build_surface(snapshot, synced_at=overrides.pop("last_synced", datetime(2026, 1, 1)))


# === Query parsing ===

def test_parse_query_signals():
    signals = parse_query("Trip 42 for John@Example.com")
    assert signals.tokens[:2] == ["trip", "42"]
    assert signals.emails == ["john@example.com"]
    assert signals.numeric_ids == [42]
    assert signals.slug_candidate == "trip-42-for-john@example.com"
    assert signals.has_identifiers


def test_parse_query_ignores_numbers_too_large_for_trip_ids():
    signals = parse_query("booking 12345678901234567890123 42")
    assert signals.numeric_ids == [42]
    assert parse_query(str(2**63)).numeric_ids == []


def test_parse_query_caps_tokens():
    signals = parse_query("one two three four five six seven eight nine ten", max_tokens=4)
    assert signals.tokens == ["one", "two", "three", "four"]


def test_decode_json_list_tolerates_garbage():
    assert decode_json_list('["a", "b"]') == ["a", "b"]
    assert decode_json_list("not json") == []
    assert decode_json_list('{"a": 1}') == []
    assert decode_json_list(None) == []


# === Signals ===

def test_identifier_signals_dominate():
    row = _row(trip_id=42)
    score, matched, reasons = score_row(row, parse_query("chrischisholm-mediterranean-2026"), WEIGHTS)
    assert "slug_exact" in reasons
    assert score >= WEIGHTS.slug_exact

    score, _, reasons = score_row(row, parse_query("trip-42"), WEIGHTS)
    assert "trip_id_exact" in reasons
    assert score >= WEIGHTS.trip_id_exact

    score, _, reasons = score_row(row, parse_query("chris.chisholm@example.com"), WEIGHTS)
    assert "primary_email_exact" in reasons
    assert score >= WEIGHTS.primary_email_exact

    _, _, reasons = score_row(row, parse_query("stephanie.stoneleigh@example.com"), WEIGHTS)
    assert "traveler_email_match" in reasons


def test_matched_tokens_are_deduplicated():
    row = _row()
    score, matched, reasons = score_row(row, parse_query("venice venice"), WEIGHTS)
    assert reasons.count("token_match") == 2
    assert matched == ["venice"]


def test_phonetic_match_for_misspelled_surname():
    _, matched, reasons = score_row(_row(), parse_query("chisolm"), WEIGHTS)
    assert reasons == ["phonetic_match"]
    assert matched == ["chisolm"]


def test_partial_name_match():
    _, _, reasons = score_row(_row(), parse_query("medi"), WEIGHTS)
    assert reasons == ["normalized_trip_name"]


def test_confirmed_status_and_traveler_bonus():
    planning, _, _ = score_row(_row(status="planning"), parse_query("venice"), WEIGHTS)
    confirmed, _, reasons = score_row(_row(status="confirmed"), parse_query("venice"), WEIGHTS)
    assert confirmed - planning == WEIGHTS.confirmed_status
    assert "confirmed_status" in reasons
    # two travelers -> +2
    assert planning == WEIGHTS.search_token + 2


def test_custom_weights():
    heavy = ScoringWeights(search_token=100)
    score, _, _ = score_row(_row(), parse_query("venice"), heavy)
    assert score == 100 + 2


# === Ranking ===

def test_tie_break_last_synced_then_trip_id():
    older = _row(trip_id=1, last_synced=datetime(2026, 1, 1))
    newer = _row(trip_id=3, last_synced=datetime(2026, 2, 1))
    same_as_newer = _row(trip_id=2, last_synced=datetime(2026, 2, 1))
    unsynced = SurfaceRow(**dict(_row(trip_id=0).model_dump(), last_synced=None))

    matches = rank_rows([older, unsynced, newer, same_as_newer], "venice", weights=WEIGHTS)
    assert [m.trip_id for m in matches] == [2, 3, 1, 0]


def test_rank_rows_limit_and_empty_query():
    rows = [_row(trip_id=i) for i in range(1, 8)]
    assert len(rank_rows(rows, "venice", limit=3)) == 3
    assert rank_rows(rows, "   ") == []


def test_higher_score_ranks_first():
    cruise = _row(trip_id=1)
    other = _row(trip_id=2, trip_name="Rome Weekend", trip_slug="rome-weekend-2026")
    matches = rank_rows([other, cruise], "chisholm cruise", weights=WEIGHTS)
    assert matches[0].trip_id == 1
    assert matches[0].score > matches[1].score
