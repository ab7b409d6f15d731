"""
Text normalization helpers shared by the surface builder, scorer and indexer.
"""

import re
import unicodedata
from typing import List, Optional, Set

_NON_ALNUM = re.compile(r"[^a-z0-9]+")
_APOSTROPHES = re.compile(r"[’']")
_EMAIL_LOCAL_SPLIT = re.compile(r"[._-]+")
_DOUBLE_LETTERS = re.compile(r"([a-z])\1+")

# Known misspellings of client surnames seen in agent queries
MANUAL_PHONETIC_VARIANTS = {
    "chisholm": ["chisolm", "chissom", "chishom"],
    "stoneleigh": ["stonleigh", "stoneley", "stonely"],
    "brianne": ["breanne", "briane"],
    "stephanie": ["steffanie", "stephany", "steffany"],
}


def remove_diacritics(value: str) -> str:
    decomposed = unicodedata.normalize("NFD", value)
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return _APOSTROPHES.sub("", stripped)


def normalize_text(value: Optional[str]) -> str:
    """Lowercase, strip accents, collapse non-alphanumerics to single spaces."""
    if not value:
        return ""
    return _NON_ALNUM.sub(" ", remove_diacritics(value).lower()).strip()


def tokenize_text(value: Optional[str]) -> List[str]:
    normalized = normalize_text(value)
    if not normalized:
        return []
    return [token for token in normalized.split(" ") if len(token) > 1]


def derive_name_from_email(email: Optional[str]) -> Optional[str]:
    """john.smith@x.com -> 'John Smith'."""
    if not email:
        return None
    local_part = email.split("@")[0]
    segments = [s for s in _EMAIL_LOCAL_SPLIT.split(local_part) if s]
    if not segments:
        return None
    return " ".join(s[:1].upper() + s[1:].lower() for s in segments)


def generate_phonetic_variants(token: str) -> List[str]:
    """Spelling variants for a lowercase token (manual table plus a few rules)."""
    variants: List[str] = []

    def add(variant: str) -> None:
        if variant and variant not in variants:
            variants.append(variant)

    for variant in MANUAL_PHONETIC_VARIANTS.get(token, []):
        add(variant)

    if token.endswith("leigh"):
        stem = token[: -len("leigh")]
        for ending in ("ley", "lee", "lay"):
            add(stem + ending)
    if token.endswith("holme"):
        add(token[:-1])
    if "ph" in token:
        add(token.replace("ph", "f"))
    if "ck" in token:
        add(token.replace("ck", "k"))
    collapsed = _DOUBLE_LETTERS.sub(r"\1", token)
    if collapsed != token:
        add(collapsed)
    if "ch" in token:
        add(token.replace("ch", "k"))

    return variants


def phonetic_tokens_for(tokens: Set[str]) -> List[str]:
    """Sorted phonetic variants of tokens, excluding anything already a token."""
    phonetic = set()
    for token in tokens:
        for variant in generate_phonetic_variants(token):
            if variant not in tokens:
                phonetic.add(variant)
    return sorted(phonetic)
