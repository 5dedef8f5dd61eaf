from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Protocol

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.location import Location

logger = logging.getLogger(__name__)

EARTH_RADIUS_KM = 6371.0
WALKING_SPEED_KMH = 5.0

MAP_SEARCH_URL = "https://www.google.com/maps/search/?api=1&query={lat},{lon}"
MAP_DIRECTIONS_URL = (
    "https://www.google.com/maps/dir/?api=1&origin={olat},{olon}&destination={dlat},{dlon}&travelmode=walking"
)


class HasCoordinates(Protocol):
    latitude: float
    longitude: float


@dataclass(frozen=True)
class DistanceResult:
    km: float
    minutes: int


def normalize_term(term: str | None) -> str:
    return " ".join(str(term or "").split()).lower()


def distance(a: HasCoordinates, b: HasCoordinates) -> DistanceResult:
    """Great-circle distance and walking time at a constant 5 km/h"""
    lat1 = math.radians(float(a.latitude))
    lat2 = math.radians(float(b.latitude))
    d_lat = math.radians(float(b.latitude) - float(a.latitude))
    d_lon = math.radians(float(b.longitude) - float(a.longitude))

    h = math.sin(d_lat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(d_lon / 2) ** 2
    c = 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))
    km = EARTH_RADIUS_KM * c

    minutes = int(math.ceil(km / WALKING_SPEED_KMH * 60))
    return DistanceResult(km=round(km, 2), minutes=minutes)


def map_link(loc: HasCoordinates) -> str:
    return MAP_SEARCH_URL.format(lat=loc.latitude, lon=loc.longitude)


def directions_link(origin: HasCoordinates, destination: HasCoordinates) -> str:
    return MAP_DIRECTIONS_URL.format(
        olat=origin.latitude,
        olon=origin.longitude,
        dlat=destination.latitude,
        dlon=destination.longitude,
    )


def _title(value: str | None) -> str:
    s = str(value or "").replace("_", " ").strip()
    return s[:1].upper() + s[1:]


class LocationService:
    """Resolves free-text place names to known campus locations"""

    @staticmethod
    def distance(a: HasCoordinates, b: HasCoordinates) -> DistanceResult:
        return distance(a, b)

    async def find_location(self, db: AsyncSession, term: str | None) -> Location | None:
        needle = normalize_term(term)
        if not needle:
            return None

        res = await db.execute(
            select(Location)
            .where(Location.is_active.is_(True), func.lower(Location.name).contains(needle, autoescape=True))
            .order_by(Location.id.asc())
            .limit(1)
        )
        by_name = res.scalar_one_or_none()
        if by_name is not None:
            return by_name

        res = await db.execute(select(Location).where(Location.is_active.is_(True)).order_by(Location.id.asc()))
        candidates = list(res.scalars().all())

        for loc in candidates:
            if needle in {normalize_term(a) for a in (loc.aliases or [])}:
                return loc
        for loc in candidates:
            for alias in loc.aliases or []:
                a = normalize_term(alias)
                if a and needle in a:
                    return loc
        return None

    async def build_reply(self, db: AsyncSession, origin_name: str | None, destination_name: str | None) -> str:
        destination = await self.find_location(db, destination_name)
        if destination is None:
            return (
                f'I couldn\'t find the location "{str(destination_name or "").strip()}". '
                "Please check the spelling or try the exact name. "
                'You can ask "What locations do you know?" to see available places.'
            )

        origin = await self.find_location(db, origin_name) if origin_name else None

        if origin is not None:
            d = distance(origin, destination)
            lines = [
                f"📍 *Route: {origin.name} → {destination.name}*",
                "",
                f"📏 Distance: ~{d.km} km",
                f"⏱️ Walking time: ~{d.minutes} minutes",
                "",
            ]
            if destination.landmarks:
                lines += [f"🗺️ Landmarks: {destination.landmarks}", ""]
            lines += ["🔗 Google Maps directions:", directions_link(origin, destination)]
            logger.info("Route reply origin=%s destination=%s km=%s", origin.name, destination.name, d.km)
            return "\n".join(lines)

        lines = [
            f"📍 *Location: {destination.name}*",
            "",
            f"🏫 Campus: {_title(destination.campus)}",
            f"📝 Type: {_title(destination.category)}",
            "",
        ]
        if destination.description:
            lines += [f"ℹ️ {destination.description}", ""]
        if destination.landmarks:
            lines += [f"🗺️ Landmarks: {destination.landmarks}", ""]
        if destination.opening_hours:
            lines += [f"🕐 Hours: {destination.opening_hours}", ""]
        lines += ["🔗 View on Google Maps:", map_link(destination)]
        if origin_name:
            lines += ["", f'(I couldn\'t find "{str(origin_name).strip()}", so here is the destination only.)']
        logger.info("Location reply destination=%s", destination.name)
        return "\n".join(lines)

    async def list_locations(self, db: AsyncSession, campus: str | None = None) -> str:
        stmt = select(Location).where(Location.is_active.is_(True))
        if campus:
            stmt = stmt.where(func.lower(Location.campus) == normalize_term(campus))
        res = await db.execute(stmt.order_by(Location.campus.asc(), Location.name.asc()))
        locations = list(res.scalars().all())
        if not locations:
            return "No locations found yet."

        grouped: dict[str, list[str]] = {}
        for loc in locations:
            grouped.setdefault(loc.campus, []).append(loc.name)

        lines = ["📍 *Available Locations:*", ""]
        for camp, names in grouped.items():
            lines.append(f"*{_title(camp)} Campus:*")
            lines += [f"  • {n}" for n in names]
            lines.append("")
        lines.append('💡 Ask "How do I get to [location]?" for directions!')
        return "\n".join(lines)
