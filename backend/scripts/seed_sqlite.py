"""
Seed the database with demo clients and trips, then build derived rows.
Uses DATABASE_URL from the environment / .env (defaults to ./tripdesk.db).
Run: python seed_sqlite.py
"""

import os
import sys
from datetime import date, datetime

# Add backend directory to path for tripdesk imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy import func, select

from tripdesk.db.database import SessionLocal, init_db
from tripdesk.db.models import (
    Client,
    FactsDirty,
    Trip,
    TripActivity,
    TripDay,
    TripLeg,
    TripStatus,
    TripTraveler,
)
from tripdesk.services.facts_engine import FactsEngine
from tripdesk.services.slugs import ensure_unique_slug, generate_trip_slug


DEMO_CLIENTS = [
    ("sara.jones@email.com", "Sara Jones"),
    ("darren.jones@email.com", "Darren Jones"),
    ("john@example.com", "John Smith"),
    ("chris.chisholm@example.com", "Chris Chisholm"),
    ("stephanie.stoneleigh@example.com", "Stephanie Stoneleigh"),
    ("maria.garcia@example.com", "Maria Garcia"),
]

DEMO_TRIPS = [
    {
        "trip_name": "Sara and Darren's Anniversary Trip",
        "destinations": "Bath, Bristol",
        "start_date": date(2025, 10, 5),
        "end_date": date(2025, 10, 12),
        "status": TripStatus.confirmed,
        "primary_client_email": "sara.jones@email.com",
        "travelers": ["sara.jones@email.com", "darren.jones@email.com"],
        "total_cost": 4800.0,
        "notes": "Romantic anniversary getaway, couple prefers boutique hotels.",
        "activities": [
            (1, "hotel", "The Royal Crescent Hotel", 1900.0),
            (2, "tour", "Roman Baths guided tour", 120.0),
            (4, "hotel", "Harbour Hotel Bristol", 1400.0),
            (5, "dining", "Anniversary dinner at Casamia", 380.0),
        ],
        "legs": [("train", datetime(2025, 10, 5, 9, 0), datetime(2025, 10, 5, 10, 30))],
    },
    {
        "trip_name": "Bristol Business Conference",
        "destinations": "Bristol",
        "start_date": date(2024, 3, 11),
        "end_date": date(2024, 3, 14),
        "status": TripStatus.completed,
        "primary_client_email": "maria.garcia@example.com",
        "travelers": ["maria.garcia@example.com"],
        "total_cost": 950.0,
        "activities": [(1, "hotel", "Bristol Marriott City Centre", 720.0)],
    },
    {
        "trip_name": "Smith Family Hawaii Vacation",
        "destinations": "Hawaii; Maui",
        "start_date": date(2025, 7, 1),
        "end_date": date(2025, 7, 14),
        "status": TripStatus.planning,
        "primary_client_email": "john@example.com",
        "travelers": ["john@example.com"],
        "total_cost": 12500.0,
        "notes": "Family trip with kids, relaxation and beach time.",
        "activities": [
            (1, "lodging", "Wailea Beach Resort", 6200.0),
            (3, "tour", "Road to Hana", 450.0),
            (6, "tour", "Snorkel Molokini", 300.0),
        ],
        "legs": [("flight", datetime(2025, 7, 1, 8, 15), datetime(2025, 7, 1, 14, 5))],
    },
    {
        "trip_name": "Chisholm Mediterranean Cruise",
        "destinations": "Mediterranean, Rome, Venice",
        "start_date": date(2026, 5, 20),
        "end_date": date(2026, 6, 3),
        "status": TripStatus.planning,
        "primary_client_email": "chris.chisholm@example.com",
        "travelers": ["chris.chisholm@example.com", "stephanie.stoneleigh@example.com"],
        "total_cost": 8900.0,
    },
]


def main():
    init_db()
    session = SessionLocal()
    print(f"Database: {session.get_bind().url}")

    known = {e for (e,) in session.execute(select(Client.email)).all()}
    for email, name in DEMO_CLIENTS:
        if email not in known:
            session.add(Client(email=email, full_name=name))
    session.commit()
    print(f"Clients: {session.execute(select(func.count(Client.client_id))).scalar()}")

    existing = {n for (n,) in session.execute(select(Trip.trip_name)).all()}
    created = 0
    for data in DEMO_TRIPS:
        if data["trip_name"] in existing:
            continue
        slug = generate_trip_slug(
            data["trip_name"], data["destinations"], data["start_date"], data["primary_client_email"]
        )
        trip = Trip(
            trip_name=data["trip_name"],
            trip_slug=ensure_unique_slug(session, slug),
            destinations=data["destinations"],
            start_date=data["start_date"],
            end_date=data["end_date"],
            status=data["status"],
            primary_client_email=data["primary_client_email"],
            total_cost=data["total_cost"],
            notes=data.get("notes"),
        )
        trip.travelers = [TripTraveler(client_email=e) for e in data["travelers"]]
        nights = (data["end_date"] - data["start_date"]).days
        trip.days = [TripDay(day_number=n + 1, title=f"Day {n + 1}") for n in range(nights)]
        trip.activities = [
            TripActivity(day_number=d, activity_type=kind, name=name, cost=cost)
            for d, kind, name, cost in data.get("activities", [])
        ]
        trip.legs = [
            TripLeg(mode=mode, depart_datetime=dep, arrive_datetime=arr)
            for mode, dep, arr in data.get("legs", [])
        ]
        session.add(trip)
        session.commit()
        created += 1
        print(f"  + {trip.trip_id}: {trip.trip_name} ({trip.trip_slug})")

    dirty = session.execute(select(func.count(FactsDirty.id))).scalar()
    print(f"\nInserted {created} trips, {dirty} dirty markers queued")

    processed = FactsEngine(session).refresh_dirty(limit=500)
    print(f"Derived rows rebuilt for {processed} trips")

    session.close()
    print("\nSeed complete!")


if __name__ == "__main__":
    main()
