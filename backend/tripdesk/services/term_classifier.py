"""
Term Classifier
Turns a free-text agent query into a short, weighted list of search terms.

Weights (higher = more selective):
  email 3.0 > proper noun 2.0 > date/number 1.8 > location 1.5 > descriptor 1.3 > generic 1.0
Classification priority is email > name > location > date/number > descriptor > generic,
so a capitalized destination ("Hawaii") is classified as a name.
"""

import re
from typing import Dict, List

from tripdesk.core.config import settings
from tripdesk.schemas.search import ClassifiedTerm

# ============================================================================
# VOCABULARY
# ============================================================================

EMAIL_PATTERN = re.compile(r"\w+@\w+\.\w+")
PROPER_NOUN_PATTERN = re.compile(r"^[A-Z][a-z]+")
DATE_TOKEN_PATTERN = re.compile(r"^(?:(?:19|20)\d{2}|\d{4}-\d{2}(?:-\d{2})?|\d{1,2}/\d{1,2}(?:/\d{2,4})?)$")
DESCRIPTOR_PATTERN = re.compile(
    r"^(anniversary|birthday|wedding|honeymoon|celebration|reunion|vacation|holiday|getaway)",
    re.IGNORECASE,
)

LOCATION_KEYWORDS = (
    "bristol", "bath", "london", "paris", "hawaii", "york", "rome", "venice",
    "mediterranean", "caribbean", "europe", "asia", "america", "africa",
    "australia", "japan", "italy", "france", "spain", "greece", "turkey",
    "croatia", "iceland", "norway", "sweden", "denmark", "portugal",
    "scotland", "ireland", "wales", "england", "thailand", "vietnam",
    "singapore", "malaysia", "indonesia", "philippines", "china", "korea",
)

SEARCH_STOP_WORDS = frozenset([
    "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for",
    "of", "with", "by", "from", "about", "as", "into", "through", "after",
    "me", "all", "show", "get", "find", "list", "display", "give", "tell",
    "their", "our", "my", "your", "his", "her", "its", "they", "we", "you",
    "details", "information", "data", "full", "complete", "everything",
    "itinerary", "trip", "travel", "accommodation", "transportation", "activities",
    "please", "need", "want", "would", "could", "should", "can", "will",
])

TERM_WEIGHTS = {
    "email": 3.0,
    "name": 2.0,
    "location": 1.5,
    "date": 1.8,
    "number": 1.8,
    "descriptor": 1.3,
    "generic": 1.0,
}

TYPO_CORRECTIONS = {
    "hawai": "hawaii",
    "mediteranean": "mediterranean",
    "carribean": "caribbean",
    "aniversary": "anniversary",
    "anniversery": "anniversary",
    "honeymon": "honeymoon",
}


# ============================================================================
# NORMALIZATION
# ============================================================================

def normalize_query(query: str) -> str:
    """
    Punctuation normalization that keeps case (needed for proper-noun detection)
    and keeps '@ . _' inside emails.
    """
    text = re.sub(r"\s*[&+]\s*", " and ", query)
    text = re.sub(r"\s*/\s*", " or ", text)
    text = re.sub(r"\s*[,;:]\s*", " ", text)
    text = re.sub(r"[\"'`‘’“”]", "", text)
    text = re.sub(r"\s*[-–—]\s*", " ", text)
    text = re.sub(r"[^\w\s@.]", "", text)
    text = re.sub(r"\s*\.\s*(?!\w)", " ", text)
    text = re.sub(r"(?<!\w)\.", " ", text)
    return re.sub(r"\s+", " ", text).strip()


def normalize_search_term(term: str) -> str:
    return normalize_query(term).lower()


def escape_like(term: str) -> str:
    """Escape LIKE wildcards; patterns must be used with escape='\\'."""
    return re.sub(r"([%_\\])", r"\\\1", term)


def sanitize_search_term(term: str) -> str:
    """LIKE-safe term with regex metacharacters removed."""
    return re.sub(r"[*+?{}()\[\]|]", "", escape_like(term.strip()))


# ============================================================================
# CLASSIFICATION
# ============================================================================

def _classify_token(token: str) -> str:
    lowered = token.lower()
    if EMAIL_PATTERN.search(token):
        return "email"
    if PROPER_NOUN_PATTERN.match(token):
        return "name"
    if any(keyword in lowered for keyword in LOCATION_KEYWORDS):
        return "location"
    if any(ch.isdigit() for ch in token):
        return "date" if DATE_TOKEN_PATTERN.match(token) else "number"
    if DESCRIPTOR_PATTERN.match(token):
        return "descriptor"
    return "generic"


def classify_terms(query: str, max_terms: int = None, min_length: int = None) -> List[ClassifiedTerm]:
    """
    Weighted search terms for a query, highest weight first.
    Never more than max_terms; every term at least min_length characters.
    """
    max_terms = max_terms or settings.search_max_terms
    min_length = min_length or settings.search_min_term_length

    tokens = [t for t in normalize_query(query or "").split(" ") if len(t) >= min_length]

    unique: Dict[str, ClassifiedTerm] = {}
    for token in tokens:
        category = _classify_token(token)
        term = token.lower()
        weight = TERM_WEIGHTS[category]
        existing = unique.get(term)
        if existing is None or existing.weight < weight:
            unique[term] = ClassifiedTerm(term=term, weight=weight, category=category)

    # sorted() is stable: ties keep query order
    ranked = sorted(unique.values(), key=lambda t: t.weight, reverse=True)[:max_terms]
    filtered = [t for t in ranked if t.term not in SEARCH_STOP_WORDS]
    return filtered if filtered else ranked[:2]


def determine_search_strategy(query: str) -> str:
    """'exact' for bare numeric ids and emails, 'fuzzy' for everything else."""
    stripped = (query or "").strip()
    if stripped.isdigit():
        return "exact"
    if EMAIL_PATTERN.search(stripped):
        return "exact"
    return "fuzzy"


def optimize_search_query(query: str, max_terms: int = None) -> List[str]:
    """Classified terms as sanitized LIKE strings, ready for pattern building."""
    return [sanitize_search_term(t.term) for t in classify_terms(query, max_terms=max_terms)]


def assess_query_complexity(query: str) -> str:
    """simple | moderate | complex, from word count and pattern features."""
    lowered = f" {query.lower()} "
    word_count = len(query.split())
    has_special = bool(re.search(r"[*+?{}()\[\]|\\]", query))
    has_filters = any(marker in lowered for marker in (" and ", " with ", " in "))
    has_broad_phrasing = any(marker in lowered for marker in (" all ", " me ", "accommodations", "transportation"))
    if word_count > 6 or has_special or has_filters or has_broad_phrasing:
        return "complex"
    has_date = bool(re.search(r"\d{4}-\d{2}-\d{2}", query))
    has_advanced = bool(re.search(r"\b(details|complete|comprehensive|all|every|total|show|display)\b", query, re.IGNORECASE))
    if word_count > 4 or has_date or has_advanced:
        return "moderate"
    return "simple"


_NAME_PATTERNS = (
    re.compile(r"^(\w+)\s*(?:and|&|\+)\s*(\w+)", re.IGNORECASE),
    re.compile(r"^(\w+)\s*[,/]\s*(\w+)", re.IGNORECASE),
    re.compile(r"^(\w+)\s+(\w+)\s+(?:and|&)\s+(\w+)", re.IGNORECASE),
    re.compile(r"^(\w+)\s+(?:and|&)\s+(\w+)\s+(\w+)", re.IGNORECASE),
)


def create_search_variations(query: str) -> List[str]:
    """Alternative phrasings of a query for broader matching, original first."""
    normalized = normalize_search_term(query)
    variations = [
        query,
        normalized,
        normalized.replace(" and ", " & "),
        normalized.replace(" and ", " "),
        normalized.replace(" or ", " "),
    ]

    for pattern in _NAME_PATTERNS:
        match = pattern.match(query)
        if not match:
            continue
        names = [g for g in match.groups() if g]
        variations.extend(name.lower() for name in names)
        variations.append(f"{names[0]} {names[1]}")
        if len(names) > 2:
            variations.append(f"{names[0]} {names[2]}")
            variations.append(f"{names[1]} {names[2]}")

    words = [w for w in normalized.split() if len(w) > 3]
    for word in words:
        if len(word) > 4:
            variations.append(word[: max(3, len(word) - 1)])
            variations.append(word[1:])

    if len(words) > 1:
        variations.append("".join(w[0] for w in words))

    for word in words:
        for typo, correct in TYPO_CORRECTIONS.items():
            if typo in word and correct not in word:
                variations.append(word.replace(typo, correct))

    seen = []
    for variation in variations:
        if variation and variation not in seen:
            seen.append(variation)
    return seen
