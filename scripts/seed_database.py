#!/usr/bin/env python3
"""
Create the Safe Route tables and load a small demo data set.

Usage:
  python3 scripts/seed_database.py            # create tables, seed if empty
  python3 scripts/seed_database.py --schema-only

Environment Variables:
    DATABASE_URL or DATABASE_HOST/PORT/USER/PASSWORD/NAME
"""

import argparse
import asyncio
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

from dotenv import load_dotenv

# Allow imports from parent directory
sys.path.insert(0, str(Path(__file__).parent.parent))

load_dotenv()

from sqlalchemy import func, select, text

from libs.db import get_engine, get_session_factory
from models.base import SCHEMA, Base
from models.incident import Incident
from models.rating import Rating
from services.ratings.types import day_of_week_for

DEMO_USER_ID = "demo-user"

# (lat, lng, category, severity, description, days_ago)
SAMPLE_INCIDENTS = [
    (40.7128, -74.0060, "theft", "medium", "Sample theft incident in downtown area", 1),
    (40.7589, -73.9851, "assault", "high", "Sample assault incident near Central Park", 3),
    (40.7505, -73.9934, "robbery", "high", "Sample robbery incident in Times Square area", 5),
    (40.7831, -73.9712, "harassment", "medium", "Sample harassment incident on Upper East Side", 8),
    (40.7282, -73.7949, "vandalism", "low", "Sample vandalism incident in Queens", 12),
]

# (lat, lng, safety_score, time_of_day, comment)
SAMPLE_RATINGS = [
    (40.7128, -74.0060, 4, "morning", "Generally safe during daytime with good foot traffic"),
    (40.7589, -73.9851, 3, "night", "Be cautious at night, limited lighting"),
    (40.7505, -73.9934, 5, "afternoon", "Busy area with good security presence"),
]


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Create tables and seed demo data")
    parser.add_argument(
        "--schema-only", action="store_true", help="Create tables without inserting demo rows"
    )
    return parser.parse_args()


async def create_tables() -> None:
    async with get_engine().begin() as conn:
        await conn.execute(text(f"CREATE SCHEMA IF NOT EXISTS {SCHEMA}"))
        await conn.run_sync(Base.metadata.create_all)
    print(f"✓ Tables ready in schema '{SCHEMA}'")


async def seed() -> None:
    now = datetime.now(timezone.utc)
    async with get_session_factory()() as session:
        if await session.scalar(select(func.count()).select_from(Incident)) == 0:
            session.add_all(
                Incident(
                    lat=lat,
                    lng=lng,
                    category=category,
                    severity=severity,
                    description=description,
                    incident_date=now - timedelta(days=days_ago),
                    reported_by=DEMO_USER_ID,
                )
                for lat, lng, category, severity, description, days_ago in SAMPLE_INCIDENTS
            )
            print(f"  Inserted {len(SAMPLE_INCIDENTS)} sample incidents")
        else:
            print("  Incidents already present, skipping")

        if await session.scalar(select(func.count()).select_from(Rating)) == 0:
            session.add_all(
                Rating(
                    user_id=DEMO_USER_ID,
                    lat=lat,
                    lng=lng,
                    safety_score=score,
                    comment=comment,
                    time_of_day=time_of_day,
                    day_of_week=day_of_week_for(now),
                    route_type="walking",
                    created_at=now,
                )
                for lat, lng, score, time_of_day, comment in SAMPLE_RATINGS
            )
            print(f"  Inserted {len(SAMPLE_RATINGS)} sample ratings")
        else:
            print("  Ratings already present, skipping")

        await session.commit()


async def main() -> int:
    args = parse_args()
    try:
        await create_tables()
        if not args.schema_only:
            await seed()
    except Exception as e:
        print(f"✗ Database setup failed: {e}")
        return 1
    finally:
        await get_engine().dispose()

    print("✓ Database setup completed")
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
