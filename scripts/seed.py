#!/usr/bin/env python3
"""Seed the database with tracked products.

Sample listings go through the same criteria, demand gate and pricing as
real discovery results, so only the ones that pass are tracked.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from dropship_ops.db.base import async_session_maker, create_schema
from dropship_ops.scoring.models import DemandPoint, DemandSample, ListingCandidate
from dropship_ops.services.discovery import evaluate_candidate
from dropship_ops.services.pipeline import save_tracked_products

SAMPLE_LISTINGS = [
    (
        ListingCandidate(
            identifier="B07SEEDMAT",
            title="Silicone Baking Mat Set of 3 - Non-Stick Half Sheet Liners",
            price=Decimal("15.00"),
            rating=4.7,
            review_count=18250,
            is_prime_eligible=True,
            availability_text="In Stock",
        ),
        [2100, 1950, 2300, 2050, 1900],
    ),
    (
        ListingCandidate(
            identifier="B08SEEDCLP",
            title="Bag Clips 24 Pack - Chip Clips for Food Storage",
            price=Decimal("7.49"),
            rating=4.5,
            review_count=3120,
            is_prime_eligible=True,
            availability_text="Only 12 left in stock - order soon.",
        ),
        [15400, 16800, 14900, 15200],
    ),
    (
        ListingCandidate(
            identifier="B09SEEDORG",
            title="Drawer Organizer Trays, 16 Piece Set",
            price=Decimal("22.99"),
            rating=4.4,
            review_count=940,
            is_prime_eligible=True,
            availability_text="In Stock",
        ),
        [48000, 52000, 45500, 50500],
    ),
    # Rejected: refurbished
    (
        ListingCandidate(
            identifier="B06SEEDREF",
            title="Electric Kettle 1.7L (Renewed)",
            price=Decimal("18.00"),
            rating=4.2,
            review_count=2600,
            is_prime_eligible=True,
            availability_text="In Stock",
        ),
        [9000, 9500, 8800],
    ),
]


def daily_sample(identifier: str, ranks: list[int], end: datetime) -> DemandSample:
    """One rank per day, ending at `end`."""
    start = end - timedelta(days=len(ranks) - 1)
    return DemandSample(
        identifier=identifier,
        points=[
            DemandPoint(timestamp=start + timedelta(days=i), sales_rank=rank)
            for i, rank in enumerate(ranks)
        ],
    )


async def seed_products() -> None:
    """Seed the database with sample tracked products."""
    await create_schema()
    now = datetime.now(timezone.utc)

    outcomes = []
    for candidate, ranks in SAMPLE_LISTINGS:
        outcome = evaluate_candidate(candidate, daily_sample(candidate.identifier, ranks, now), rng=42)
        if outcome.passed:
            print(f"Passed: {candidate.title} -> ${outcome.pricing.list_price}")
        else:
            print(f"Rejected ({outcome.rejection}): {candidate.title}")
        outcomes.append(outcome)

    async with async_session_maker() as session:
        created, existing = await save_tracked_products(outcomes, session, now)
        await session.commit()

    print(f"\nSeeding complete! {len(created)} created, {existing} already tracked")


if __name__ == "__main__":
    asyncio.run(seed_products())
