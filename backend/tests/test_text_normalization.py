"""Normalization, phonetic variants and trip slugs."""
from datetime import date

from tripdesk.services.slugs import ensure_unique_slug, generate_trip_slug, is_valid_slug
from tripdesk.services.text_normalization import (
    derive_name_from_email,
    generate_phonetic_variants,
    normalize_text,
    phonetic_tokens_for,
    tokenize_text,
)


def test_normalize_text():
    assert normalize_text("Zoë's  Café & Bar!") == "zoes cafe bar"
    assert normalize_text(None) == ""


def test_tokenize_drops_single_characters():
    assert tokenize_text("A trip to St. Ives") == ["trip", "to", "st", "ives"]


def test_derive_name_from_email():
    assert derive_name_from_email("john.smith@x.com") == "John Smith"
    assert derive_name_from_email("mary_ann-lee@x.com") == "Mary Ann Lee"
    assert derive_name_from_email(None) is None


def test_phonetic_variants():
    variants = generate_phonetic_variants("stoneleigh")
    assert {"stonleigh", "stoneley", "stonelee", "stonelay"} <= set(variants)
    assert "stefanie" in generate_phonetic_variants("stephanie")
    assert "jack" not in generate_phonetic_variants("jack")
    assert generate_phonetic_variants("jack") == ["jak"]


def test_phonetic_tokens_skip_existing():
    assert "chisolm" in phonetic_tokens_for({"chisholm"})
    assert "jak" not in phonetic_tokens_for({"jack", "jak"})


# === Slugs ===

def test_slug_from_email_destination_and_year():
    slug = generate_trip_slug("Sara and Darren's Anniversary Trip", "Bath, Bristol", date(2025, 10, 5), "sara.jones@email.com")
    assert slug == "sarajones-bath-bristol-2025"
    assert is_valid_slug(slug)


def test_slug_without_email_or_destination():
    assert generate_trip_slug("Smith Family Hawaii", None, "2024-06-01") == "smith-family-trip-2024"


def test_invalid_slugs():
    assert not is_valid_slug("Has Spaces")
    assert not is_valid_slug("trailing-")
    assert not is_valid_slug("")


def test_unique_slug_appends_counter(session, trips):
    taken = generate_trip_slug("Sara and Darren's Anniversary Trip", "Bath, Bristol", date(2025, 10, 5), "sara.jones@email.com")
    assert ensure_unique_slug(session, taken) == f"{taken}-1"
    assert ensure_unique_slug(session, taken, exclude_trip_id=trips["sara"]) == taken
    assert ensure_unique_slug(session, "fresh-slug-2030") == "fresh-slug-2030"
