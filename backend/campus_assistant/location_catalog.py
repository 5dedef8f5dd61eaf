"""Known campus locations"""
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from .models.location import Location

CAMPUS_LOCATIONS: list[dict[str, object]] = [
    {
        "name": "Aggrey Hall",
        "aliases": ["aggrey", "great hall"],
        "category": "hall",
        "campus": "central",
        "latitude": 5.5438,
        "longitude": -0.3494,
        "description": "Main assembly hall for university events",
        "landmarks": "Near the main gate, opposite the library",
    },
    {
        "name": "University Library",
        "aliases": ["library", "main library", "sam jonah library"],
        "category": "library",
        "campus": "central",
        "latitude": 5.5445,
        "longitude": -0.3501,
        "description": "Main university library with study areas and resources",
        "opening_hours": "Mon-Fri: 8am-10pm, Sat-Sun: 9am-6pm",
        "landmarks": "Opposite Aggrey Hall, near the fountain",
    },
    {
        "name": "North Campus (Simpa A)",
        "aliases": ["north campus", "simpa a", "simpa", "nc"],
        "category": "landmark",
        "campus": "north",
        "latitude": 5.5512,
        "longitude": -0.3467,
        "description": "North Campus area with various departments",
        "landmarks": "Near the sports complex",
    },
    {
        "name": "SRC Office",
        "aliases": ["src", "student representative council"],
        "category": "office",
        "campus": "central",
        "latitude": 5.5442,
        "longitude": -0.3498,
        "description": "Student Representative Council office",
        "opening_hours": "Mon-Fri: 9am-5pm",
    },
    {
        "name": "Main Gate",
        "aliases": ["entrance", "front gate", "main entrance"],
        "category": "gate",
        "campus": "central",
        "latitude": 5.5435,
        "longitude": -0.3490,
        "description": "Main university entrance",
    },
    {
        "name": "Faculty of Education Building",
        "aliases": ["education building", "foe", "education faculty"],
        "category": "department",
        "campus": "central",
        "latitude": 5.5448,
        "longitude": -0.3505,
        "description": "Faculty of Education main building",
    },
    {
        "name": "ICT Directorate",
        "aliases": ["ict", "computer center", "it directorate"],
        "category": "office",
        "campus": "central",
        "latitude": 5.5440,
        "longitude": -0.3496,
        "description": "ICT services and support center",
        "opening_hours": "Mon-Fri: 8am-5pm",
    },
    {
        "name": "University Cafeteria",
        "aliases": ["cafeteria", "canteen", "dining hall"],
        "category": "cafeteria",
        "campus": "central",
        "latitude": 5.5443,
        "longitude": -0.3499,
        "description": "Main cafeteria serving breakfast, lunch, and dinner",
        "opening_hours": "7am-9pm daily",
    },
]

_FIELDS = ("aliases", "category", "campus", "latitude", "longitude", "description", "landmarks", "opening_hours")


async def seed_locations(db: AsyncSession, entries: list[dict[str, object]] | None = None) -> tuple[int, int]:
    """Insert or update locations by name; returns (created, updated)"""
    created = 0
    updated = 0
    for data in entries if entries is not None else CAMPUS_LOCATIONS:
        name = str(data["name"])
        existing = (await db.execute(select(Location).where(Location.name == name))).scalar_one_or_none()
        if existing is None:
            db.add(Location(**data, is_active=True))
            created += 1
            continue
        for field in _FIELDS:
            setattr(existing, field, data.get(field))
        existing.is_active = True
        updated += 1
    await db.commit()
    return created, updated
