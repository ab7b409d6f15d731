"""Shared fixtures: in-memory SQLite store, seeded trips and an API client."""
from datetime import date, datetime

import pytest
from sqlalchemy.orm import sessionmaker

from tripdesk.db.database import build_engine, get_db, init_db
from tripdesk.db.models import (
    Client,
    Trip,
    TripActivity,
    TripDay,
    TripLeg,
    TripStatus,
    TripTraveler,
)
from tripdesk.services.facts_engine import FactsEngine
from tripdesk.services.slugs import ensure_unique_slug, generate_trip_slug

CLIENTS = [
    ("sara.jones@email.com", "Sara Jones"),
    ("darren.jones@email.com", "Darren Jones"),
    ("john@example.com", "John Smith"),
    ("maria.garcia@example.com", "Maria Garcia"),
    ("chris.chisholm@example.com", "Chris Chisholm"),
]


def add_trip(
    session,
    trip_name,
    trip_id=None,
    destinations=None,
    start_date=None,
    end_date=None,
    status=TripStatus.planning,
    primary_client_email=None,
    travelers=(),
    total_cost=0.0,
    notes=None,
    activities=(),
    day_count=0,
    legs=(),
):
    slug = generate_trip_slug(trip_name, destinations, start_date, primary_client_email)
    trip = Trip(
        trip_id=trip_id,
        trip_name=trip_name,
        trip_slug=ensure_unique_slug(session, slug),
        destinations=destinations,
        start_date=start_date,
        end_date=end_date,
        status=status,
        primary_client_email=primary_client_email,
        total_cost=total_cost,
        notes=notes,
    )
    trip.travelers = [TripTraveler(client_email=email) for email in travelers]
    trip.days = [TripDay(day_number=n + 1, title=f"Day {n + 1}") for n in range(day_count)]
    trip.activities = [
        TripActivity(day_number=day, activity_type=kind, name=name, cost=cost)
        for day, kind, name, cost in activities
    ]
    trip.legs = [TripLeg(mode=mode, depart_datetime=dep, arrive_datetime=arr) for mode, dep, arr in legs]
    session.add(trip)
    session.commit()
    return trip.trip_id


@pytest.fixture()
def engine():
    engine = build_engine("sqlite://")
    init_db(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def session(engine):
    Session = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    db = Session()
    yield db
    db.close()


@pytest.fixture()
def clients(session):
    for email, name in CLIENTS:
        session.add(Client(email=email, full_name=name))
    session.commit()
    return dict(CLIENTS)


@pytest.fixture()
def trips(session, clients):
    """Four demo trips, derived rows built. Returns name -> trip_id."""
    ids = {}
    ids["sara"] = add_trip(
        session,
        "Sara and Darren's Anniversary Trip",
        destinations="Bath, Bristol",
        start_date=date(2025, 10, 5),
        end_date=date(2025, 10, 12),
        status=TripStatus.confirmed,
        primary_client_email="sara.jones@email.com",
        travelers=["sara.jones@email.com", "darren.jones@email.com"],
        total_cost=4800.0,
        notes="Romantic anniversary getaway for the couple.",
        activities=[
            (1, "hotel", "The Royal Crescent Hotel", 1900.0),
            (2, "tour", "Roman Baths guided tour", 120.0),
            (4, "lodging", "Harbour Hotel Bristol", 1400.0),
        ],
        day_count=7,
        legs=[("train", datetime(2025, 10, 5, 9, 0), datetime(2025, 10, 5, 10, 30))],
    )
    ids["bristol"] = add_trip(
        session,
        "Bristol Business Conference",
        destinations="Bristol",
        start_date=date(2024, 3, 11),
        end_date=date(2024, 3, 14),
        status=TripStatus.completed,
        primary_client_email="maria.garcia@example.com",
        travelers=["maria.garcia@example.com"],
        total_cost=950.0,
    )
    ids["hawaii"] = add_trip(
        session,
        "Smith Family Hawaii Vacation",
        destinations="Hawaii; Maui",
        start_date=date(2025, 7, 1),
        end_date=date(2025, 7, 14),
        primary_client_email="john@example.com",
        travelers=["john@example.com"],
        total_cost=12500.0,
        activities=[(1, "lodging", "Wailea Beach Resort", 6200.0), (3, "tour", "Road to Hana", 450.0)],
    )
    ids["cruise"] = add_trip(
        session,
        "Chisholm Mediterranean Cruise",
        trip_id=42,
        destinations="Mediterranean, Rome, Venice",
        start_date=date(2026, 5, 20),
        end_date=date(2026, 6, 3),
        primary_client_email="chris.chisholm@example.com",
        travelers=["chris.chisholm@example.com"],
        total_cost=8900.0,
    )
    FactsEngine(session).refresh_dirty(limit=100)
    return ids


@pytest.fixture()
def api_client(session):
    from fastapi.testclient import TestClient
    from tripdesk.main import app

    def override_get_db():
        yield session

    app.dependency_overrides[get_db] = override_get_db
    # No context manager: the lifespan would initialize the configured database
    yield TestClient(app)
    app.dependency_overrides.clear()
