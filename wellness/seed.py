"""Populate the booking store with mock bookings for the admin dashboard.

Usage:
    # 200 random bookings into the configured store
    python -m wellness.seed

    # Reproducible data set
    python -m wellness.seed --count 50 --seed 7

    # Write JSON instead of inserting
    python -m wellness.seed --count 20 --output bookings.json
"""

import argparse
import asyncio
import json
import logging
import random
from datetime import date, timedelta
from pathlib import Path
from typing import Optional

from wellness.config import settings
from wellness.stores import BookingStore, create_store
from wellness.validation import (
    EDUCATION_OPTIONS,
    GENDER_OPTIONS,
    PROFESSION_OPTIONS,
    RACE_OPTIONS,
    TIME_SLOTS,
)

log = logging.getLogger("wellness.seed")

START_DATE = date(2023, 1, 1)

# Session price by duration (minutes)
PRICES = {60: 150, 90: 200, 120: 250}


def generate_bookings(
    count: int,
    rng: Optional[random.Random] = None,
    location: str = "",
    end: Optional[date] = None,
) -> list[dict]:
    """Generate ``count`` random booking rows between 2023-01-01 and ``end``."""
    rng = rng or random.Random()
    location = location or settings.booking_location
    end = end or date.today()
    span = max((end - START_DATE).days, 0)

    bookings = []
    for i in range(1, count + 1):
        duration = rng.choice(list(PRICES))
        bookings.append({
            "first_name": f"FirstName{i}",
            "last_name": f"LastName{i}",
            "email": f"user{i}@example.com",
            "phone": f"555{i:07d}",
            "date": (START_DATE + timedelta(days=rng.randint(0, span))).isoformat(),
            "time": rng.choice(TIME_SLOTS),
            "duration": duration,
            "location": location,
            "group_size": 1,
            "amount": PRICES[duration],
            "age": rng.randint(18, 67),
            "gender": rng.choice(GENDER_OPTIONS),
            "race": rng.choice(RACE_OPTIONS),
            "education": rng.choice(EDUCATION_OPTIONS),
            "profession": rng.choice(PROFESSION_OPTIONS),
        })
    return bookings


async def seed_store(store: BookingStore, bookings: list[dict]) -> int:
    """Insert bookings one at a time. Returns how many were stored."""
    stored = 0
    for booking in bookings:
        await store.insert_booking(booking)
        stored += 1
    log.info("Seeded %d booking(s)", stored)
    return stored


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(
        description="Generate mock bookings for the admin dashboard",
        prog="python -m wellness.seed",
    )
    parser.add_argument("--count", type=int, default=200, help="Number of bookings (default: 200)")
    parser.add_argument("--seed", type=int, default=None, help="Random seed for reproducible data")
    parser.add_argument("--output", help="Write bookings to this JSON file instead of the store")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(name)-20s %(levelname)-7s %(message)s")

    bookings = generate_bookings(args.count, random.Random(args.seed))

    if args.output:
        Path(args.output).write_text(json.dumps(bookings, indent=2), encoding="utf-8")
        print(f"Wrote {len(bookings)} bookings to {args.output}")
        return

    store, _ = create_store(settings)
    stored = asyncio.run(seed_store(store, bookings))
    print(f"Done: {stored} bookings inserted ({settings.store_provider} store)")


if __name__ == "__main__":
    main()
