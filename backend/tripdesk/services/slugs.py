"""
Trip slug generation: client-destination-year (e.g. "sara-jones-bath-bristol-2025").
"""

import re
from datetime import date
from typing import Optional, Union

from sqlalchemy import select
from sqlalchemy.orm import Session

from tripdesk.db.models import Trip

_SLUG_STRIP = re.compile(r"[^\w\s-]")
_WHITESPACE = re.compile(r"\s+")
_DASHES = re.compile(r"-+")
_YEAR = re.compile(r"(\d{4})")
_VALID_SLUG = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")


def _clean_part(text: str, max_length: int) -> str:
    cleaned = _SLUG_STRIP.sub("", text.lower())
    cleaned = _DASHES.sub("-", _WHITESPACE.sub("-", cleaned)).strip("-")
    return cleaned[:max_length].rstrip("-")


def generate_trip_slug(
    trip_name: str,
    destinations: Optional[str] = None,
    start_date: Optional[Union[date, str]] = None,
    primary_client_email: Optional[str] = None,
) -> str:
    if primary_client_email:
        client_part = _clean_part(primary_client_email.split("@")[0], 20)
    else:
        client_part = _clean_part(" ".join(trip_name.split()[:2]), 20)

    destination_part = "trip"
    if destinations and destinations.strip():
        destination_part = _clean_part(" ".join(destinations.split()[:2]), 15) or "trip"

    year_part = str(date.today().year)
    if start_date:
        match = _YEAR.search(str(start_date))
        if match:
            year_part = match.group(1)

    slug = f"{client_part}-{destination_part}-{year_part}".replace("&", "and")
    slug = re.sub(r"[^\w-]", "", slug).replace("_", "-")
    return _DASHES.sub("-", slug).strip("-").lower()


def is_valid_slug(slug: str) -> bool:
    return bool(slug) and len(slug) <= 100 and bool(_VALID_SLUG.match(slug))


def ensure_unique_slug(db: Session, base_slug: str, exclude_trip_id: Optional[int] = None) -> str:
    """Append -1, -2 ... until no other trip owns the slug."""
    slug = base_slug
    counter = 1
    while True:
        stmt = select(Trip.trip_id).where(Trip.trip_slug == slug)
        if exclude_trip_id is not None:
            stmt = stmt.where(Trip.trip_id != exclude_trip_id)
        if db.execute(stmt).first() is None:
            return slug
        slug = f"{base_slug}-{counter}"
        counter += 1
