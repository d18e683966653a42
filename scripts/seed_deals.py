"""Seed a handful of sample deals around midtown Manhattan.

Creates the tables if needed and inserts the samples only when the deals
table is empty, so it is safe to run repeatedly.

Usage:
    python scripts/seed_deals.py
    python scripts/seed_deals.py --force   # insert even if deals exist
"""

import argparse
import asyncio
import os
import sys

# Add backend to path so we can import dealhub modules
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "backend"))

from sqlalchemy import func, select

from dealhub.core.logging import setup_logging
from dealhub.db.session import create_engine, create_session_factory
from dealhub.models import Base, Deal
from dealhub.schemas import DealCreateRequest
from dealhub.services.deal_service import DealService


SAMPLE_DEALS = [
    {
        "storeName": "Joe Coffee",
        "category": "coffee",
        "title": "Buy one latte, get one free",
        "image": "https://images.unsplash.com/photo-1509042239860-f550ce710b93",
        "discount": 50,
        "originalPrice": 5.5,
        "discountedPrice": 2.75,
        "badge": "great-deal",
        "location": {
            "lat": 40.7614, "lng": -73.9776,
            "address": "44 W 55th St", "city": "New York", "state": "NY", "zipCode": "10019",
        },
    },
    {
        "storeName": "Shake Shack",
        "category": "restaurant",
        "title": "20% off any burger combo",
        "image": "https://images.unsplash.com/photo-1568901346375-23c9450c58cd",
        "discount": 20,
        "badge": "trending",
        "partnerAppName": "Shack App",
        "partnerAppUrl": "https://shakeshack.com/app",
        "location": {
            "lat": 40.7580, "lng": -73.9855,
            "address": "1540 Broadway", "city": "New York", "state": "NY", "zipCode": "10036",
        },
        "deals": [
            {"title": "Free fries with any shake", "discount": 100, "originalPrice": 4.29},
        ],
    },
    {
        "storeName": "Whole Foods Market",
        "category": "grocery",
        "title": "15% off prepared foods after 7pm",
        "image": "https://images.unsplash.com/photo-1542838132-92c53300491e",
        "discount": 15,
        "badge": "ends-soon",
        "location": {
            "lat": 40.7505, "lng": -73.9934,
            "address": "450 W 33rd St", "city": "New York", "state": "NY", "zipCode": "10001",
        },
    },
    {
        "storeName": "Shell",
        "category": "gas",
        "title": "10 cents off per gallon",
        "image": "https://images.unsplash.com/photo-1545262810-77515befe149",
        "discount": 3,
        "badge": "new",
        "location": {
            "lat": 40.7736, "lng": -73.9566,
            "address": "1855 1st Ave", "city": "New York", "state": "NY", "zipCode": "10128",
        },
    },
]


async def seed_deals(force: bool = False) -> int:
    """Insert the sample deals. Returns the number of rows created."""
    engine = create_engine(echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = create_session_factory(engine)
    created = 0

    try:
        async with session_factory() as session:
            existing = (await session.execute(select(func.count(Deal.id)))).scalar_one()
            if existing and not force:
                print(f"⏭️  {existing} deal(s) already present, skipping (use --force to add anyway)")
                return 0

            service = DealService(session)
            for sample in SAMPLE_DEALS:
                deal = await service.create_deal(DealCreateRequest.model_validate(sample).model_dump())
                print(f"  ✅ {deal.store_name}: {deal.title}")
                created += 1
    finally:
        await engine.dispose()

    return created


def main():
    parser = argparse.ArgumentParser(description="Seed sample deals")
    parser.add_argument("--force", action="store_true", help="Insert even if deals already exist")
    args = parser.parse_args()

    setup_logging()

    print("\n🌱 Seeding sample deals...\n")
    try:
        count = asyncio.run(seed_deals(force=args.force))
    except Exception as e:
        print(f"\n❌ Seeding failed: {e}")
        print("\n💡 Troubleshooting:")
        print("   - Make sure the database is running")
        print("   - Check your DATABASE_URL in .env\n")
        sys.exit(1)

    print(f"\n🎉 Created {count} deal(s)\n")


if __name__ == "__main__":
    main()
