"""
Batch refresh of derived trip rows (facts, search surface, components).
Drains the dirty queue first, then sweeps trips with missing or stale facts.
Run: python refresh_facts.py [--limit N] [--sweep-only | --dirty-only]
"""

import argparse
import os
import sys
import time

# Add backend directory to path for tripdesk imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from tripdesk.core.config import settings
from tripdesk.db.database import SessionLocal, init_db
from tripdesk.db.repositories import TripRepository
from tripdesk.services.facts_engine import FactsEngine


def main():
    parser = argparse.ArgumentParser(description="Refresh derived trip rows")
    parser.add_argument("--limit", type=int, default=None, help="Trips per pass")
    group = parser.add_mutually_exclusive_group()
    group.add_argument("--sweep-only", action="store_true", help="Skip the dirty queue")
    group.add_argument("--dirty-only", action="store_true", help="Skip the stale-facts sweep")
    args = parser.parse_args()

    init_db()
    session = SessionLocal()
    engine = FactsEngine(session)
    start = time.perf_counter()

    try:
        if not args.sweep_only:
            limit = args.limit or settings.dirty_batch_limit
            drained = engine.refresh_dirty(limit)
            print(f"Dirty queue: {drained} trips refreshed, {TripRepository(session).count_dirty()} markers left")
        if not args.dirty_only:
            limit = args.limit or settings.facts_bulk_limit
            swept = engine.bulk_refresh_facts(limit)
            print(f"Stale sweep: {swept} trips refreshed")
    finally:
        session.close()

    print(f"Done in {time.perf_counter() - start:.2f}s")


if __name__ == "__main__":
    main()
