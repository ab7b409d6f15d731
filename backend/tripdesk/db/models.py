"""
Database models -- SQLAlchemy ORM definitions.

Source tables (clients, trips and their travelers / schedule) are owned by trip
management. Derived tables (trip_facts, trip_search_surface, trip_components,
facts_dirty) are caches owned by the search & facts core and can be rebuilt
from the source rows at any time.
Compatible with both PostgreSQL and SQLite.
"""

import enum
from datetime import datetime, timezone

from sqlalchemy import (
    Column,
    Date,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()

# trips.trip_id is a signed 64-bit integer on both backends
MAX_TRIP_ID = 2**63 - 1


def utcnow() -> datetime:
    """Naive UTC timestamp (SQLite stores naive datetimes)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class TripStatus(str, enum.Enum):
    planning = "planning"
    confirmed = "confirmed"
    in_progress = "in_progress"
    completed = "completed"
    cancelled = "cancelled"


# ============================================================================
# SOURCE TABLES
# ============================================================================

class Client(Base):
    __tablename__ = "clients"

    client_id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String(320), unique=True, nullable=False, index=True)
    full_name = Column(Text, index=True)
    phone = Column(String(64))
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)


class Trip(Base):
    """
    System-of-record trip. Travelers, days, activities and legs hang off it
    as typed child rows instead of JSON blobs.
    """
    __tablename__ = "trips"

    trip_id = Column(Integer, primary_key=True, autoincrement=True)
    trip_name = Column(Text, nullable=False, index=True)
    trip_slug = Column(String(200), unique=True, index=True)
    status = Column(
        Enum(TripStatus, name="trip_status", native_enum=False, validate_strings=True),
        default=TripStatus.planning,
        nullable=False,
        index=True,
    )
    start_date = Column(Date)
    end_date = Column(Date)
    destinations = Column(Text)
    primary_client_email = Column(String(320), index=True)
    total_cost = Column(Float, default=0.0)
    paid_amount = Column(Float, default=0.0)
    currency = Column(String(3), default="USD")
    notes = Column(Text)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False, index=True)

    travelers = relationship(
        "TripTraveler", back_populates="trip", cascade="all, delete-orphan",
        order_by="TripTraveler.id",
    )
    days = relationship(
        "TripDay", back_populates="trip", cascade="all, delete-orphan",
        order_by="TripDay.day_number",
    )
    activities = relationship(
        "TripActivity", back_populates="trip", cascade="all, delete-orphan",
        order_by="TripActivity.id",
    )
    legs = relationship(
        "TripLeg", back_populates="trip", cascade="all, delete-orphan",
        order_by="TripLeg.id",
    )


class TripTraveler(Base):
    """Trip <-> client assignment (the embedded traveler list)."""
    __tablename__ = "trip_travelers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    trip_id = Column(Integer, ForeignKey("trips.trip_id", ondelete="CASCADE"), nullable=False, index=True)
    client_email = Column(String(320), nullable=False, index=True)
    role = Column(String(50), default="traveler")

    trip = relationship("Trip", back_populates="travelers")

    __table_args__ = (
        UniqueConstraint("trip_id", "client_email", name="uq_trip_traveler"),
    )


class TripDay(Base):
    __tablename__ = "trip_days"

    id = Column(Integer, primary_key=True, autoincrement=True)
    trip_id = Column(Integer, ForeignKey("trips.trip_id", ondelete="CASCADE"), nullable=False, index=True)
    day_number = Column(Integer, nullable=False)
    day_date = Column(Date)
    title = Column(Text)

    trip = relationship("Trip", back_populates="days")


class TripActivity(Base):
    __tablename__ = "trip_activities"

    id = Column(Integer, primary_key=True, autoincrement=True)
    trip_id = Column(Integer, ForeignKey("trips.trip_id", ondelete="CASCADE"), nullable=False, index=True)
    day_number = Column(Integer)
    activity_type = Column(String(50), default="activity")  # hotel / lodging / tour / dining ...
    name = Column(Text)
    cost = Column(Float, default=0.0)

    trip = relationship("Trip", back_populates="activities")


class TripLeg(Base):
    """Transit leg (flight, train, transfer)."""
    __tablename__ = "trip_legs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    trip_id = Column(Integer, ForeignKey("trips.trip_id", ondelete="CASCADE"), nullable=False, index=True)
    mode = Column(String(50))
    depart_datetime = Column(DateTime)
    arrive_datetime = Column(DateTime)

    trip = relationship("Trip", back_populates="legs")


# ============================================================================
# DERIVED TABLES (caches)
# ============================================================================

class TripFacts(Base):
    """Precomputed aggregates per trip. version increases on every recompute."""
    __tablename__ = "trip_facts"

    trip_id = Column(Integer, ForeignKey("trips.trip_id", ondelete="CASCADE"), primary_key=True)
    total_nights = Column(Integer, default=0, nullable=False)
    total_hotels = Column(Integer, default=0, nullable=False)
    total_activities = Column(Integer, default=0, nullable=False)
    total_cost = Column(Float, default=0.0, nullable=False)
    transit_minutes = Column(Integer, default=0, nullable=False)
    traveler_count = Column(Integer, default=0, nullable=False)
    traveler_names = Column(Text)   # JSON array
    traveler_emails = Column(Text)  # JSON array
    primary_client_email = Column(String(320))
    primary_client_name = Column(Text)
    version = Column(Integer, default=1, nullable=False)
    last_computed = Column(DateTime, default=utcnow, nullable=False)


class TripSearchSurface(Base):
    """Denormalized, pre-tokenized projection of a trip for candidate retrieval."""
    __tablename__ = "trip_search_surface"

    trip_id = Column(Integer, ForeignKey("trips.trip_id", ondelete="CASCADE"), primary_key=True)
    trip_name = Column(Text, nullable=False)
    trip_slug = Column(String(200), index=True)
    status = Column(String(32))
    start_date = Column(String(10))
    end_date = Column(String(10))
    destinations = Column(Text)
    primary_client_name = Column(Text)
    primary_client_email = Column(String(320), index=True)
    traveler_names = Column(Text)   # JSON array
    traveler_emails = Column(Text)  # JSON array
    normalized_trip_name = Column(Text)
    normalized_destinations = Column(Text)
    normalized_travelers = Column(Text)
    normalized_emails = Column(Text)
    search_tokens = Column(Text, nullable=False, default="")
    phonetic_tokens = Column(Text)
    traveler_count = Column(Integer, default=0, nullable=False)
    last_synced = Column(DateTime, default=utcnow, nullable=False, index=True)


class TripComponent(Base):
    """Weighted semantic component extracted from a trip."""
    __tablename__ = "trip_components"

    component_id = Column(Integer, primary_key=True, autoincrement=True)
    trip_id = Column(Integer, ForeignKey("trips.trip_id", ondelete="CASCADE"), nullable=False, index=True)
    component_type = Column(String(20), nullable=False, index=True)
    component_value = Column(Text, nullable=False, index=True)
    search_weight = Column(Float, default=1.0, nullable=False)
    synonyms = Column(Text)  # JSON array
    source = Column(String(50))
    created_at = Column(DateTime, default=utcnow, nullable=False)


class FactsDirty(Base):
    """
    Append-only, at-least-once work marker. No foreign key: a delete marker
    must outlive the trip row it points at.
    """
    __tablename__ = "facts_dirty"

    id = Column(Integer, primary_key=True, autoincrement=True)
    trip_id = Column(Integer, nullable=False, index=True)
    reason = Column(String(50), nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("trip_id", "reason", "created_at", name="uq_facts_dirty_marker"),
        Index("idx_facts_dirty_created", "created_at"),
    )
