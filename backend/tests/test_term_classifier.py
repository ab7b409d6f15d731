"""Term classification, normalization and query variations."""
from tripdesk.services.term_classifier import (
    assess_query_complexity,
    classify_terms,
    create_search_variations,
    determine_search_strategy,
    escape_like,
    normalize_query,
    optimize_search_query,
    sanitize_search_term,
)


# === Classification ===

def test_email_term_weighted_highest():
    terms = classify_terms("john@example.com")
    assert [t.term for t in terms] == ["john@example.com"]
    assert terms[0].weight == 3.0
    assert terms[0].category == "email"


def test_command_words_dropped_after_truncation():
    terms = classify_terms("show me all Hawaii trips")
    assert [t.term for t in terms] == ["hawaii"], f"got {terms}"
    assert terms[0].category == "name"


def test_at_most_three_terms_sorted_without_duplicates():
    terms = classify_terms("Sara Darren bristol bath 2025 sara")
    assert len(terms) <= 3
    weights = [t.weight for t in terms]
    assert weights == sorted(weights, reverse=True)
    assert len({t.term for t in terms}) == len(terms)
    assert all(len(t.term) >= 2 for t in terms)


def test_categories_and_weights():
    by_term = {t.term: t for t in classify_terms("bristol 2025 anniversary", max_terms=5)}
    assert by_term["2025"].category == "date" and by_term["2025"].weight == 1.8
    assert by_term["bristol"].category == "location" and by_term["bristol"].weight == 1.5
    assert by_term["anniversary"].category == "descriptor" and by_term["anniversary"].weight == 1.3


def test_short_tokens_dropped():
    terms = classify_terms("a b hawaii", max_terms=5)
    assert [t.term for t in terms] == ["hawaii"]


def test_only_stop_words_keeps_first_two():
    terms = classify_terms("show me all")
    assert [t.term for t in terms] == ["show", "me"]


def test_empty_query():
    assert classify_terms("") == []


def test_optimize_escapes_wildcards():
    assert optimize_search_query("deal_2025") == ["deal\\_2025"]


# === Strategy & complexity ===

def test_search_strategy():
    assert determine_search_strategy("42") == "exact"
    assert determine_search_strategy(" sara.jones@email.com ") == "exact"
    assert determine_search_strategy("hawaii trip") == "fuzzy"


def test_query_complexity():
    assert assess_query_complexity("hawaii") == "simple"
    assert assess_query_complexity("show details 2025-10-05") == "moderate"
    assert assess_query_complexity("show me all Hawaii trips") == "complex"


# === Normalization ===

def test_normalize_query_keeps_case_and_emails():
    assert normalize_query("Sara & Darren's trip") == "Sara and Darrens trip"
    assert normalize_query("sara.jones@email.com, Bath") == "sara.jones@email.com Bath"
    assert normalize_query("Anniversary - Bath/Bristol") == "Anniversary Bath or Bristol"


def test_escape_like():
    assert escape_like("50%_off\\") == "50\\%\\_off\\\\"


def test_sanitize_strips_regex_metacharacters():
    assert sanitize_search_term("  (rome|venice)* 10%  ") == "romevenice 10\\%"


def test_variations_split_couple_names():
    variations = create_search_variations("Sara and Darren")
    assert variations[0] == "Sara and Darren"
    assert "sara" in variations
    assert "darren" in variations
    assert len(variations) == len(set(variations))


def test_variations_fix_known_typos():
    assert "mediterranean" in create_search_variations("mediteranean")
