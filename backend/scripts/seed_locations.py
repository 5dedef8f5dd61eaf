"""Seed the campus location catalogue"""
import asyncio
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from campus_assistant.database import AsyncSessionLocal, init_db
from campus_assistant.location_catalog import CAMPUS_LOCATIONS, seed_locations


async def main():
    await init_db()
    async with AsyncSessionLocal() as db:
        created, updated = await seed_locations(db)
    print(f"✓ Seeded {len(CAMPUS_LOCATIONS)} locations (new {created}, updated {updated})")


if __name__ == "__main__":
    asyncio.run(main())
