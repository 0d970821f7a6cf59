"""Demo data: San Francisco parking spots, inserted when the table is empty."""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from src.ps_common.datetime_utils import utc_now
from src.ps_common.id_generator import generate_id
from src.ps_spot.domain.models import Spot
from src.ps_spot.domain.repository import SpotRepositoryProtocol

logger = logging.getLogger(__name__)

# (name, address, lat, lng, rate_cents, total, available, restrictions, zone)
SF_SPOTS: list[tuple[str, str, float, float, int, int, int, list[str], str]] = [
    ("Mission & 16th St", "Mission St & 16th St, San Francisco, CA",
     37.7651, -122.4194, 250, 12, 8, ["2 hour limit", "No overnight"], "Mission"),
    ("Castro & Market", "Castro St & Market St, San Francisco, CA",
     37.7614, -122.4350, 275, 8, 3, ["1 hour limit"], "Castro"),
    ("Hayes Valley", "Hayes St & Octavia Blvd, San Francisco, CA",
     37.7769, -122.4264, 225, 15, 12, ["4 hour limit"], "Hayes Valley"),
    ("North Beach", "Columbus Ave & Broadway, San Francisco, CA",
     37.7999, -122.4084, 300, 6, 2, ["2 hour limit", "No overnight"], "North Beach"),
    ("Marina District", "Chestnut St & Fillmore St, San Francisco, CA",
     37.8005, -122.4368, 250, 10, 7, ["3 hour limit"], "Marina"),
    ("Fisherman's Wharf", "Jefferson St & Taylor St, San Francisco, CA",
     37.8080, -122.4150, 400, 20, 15, ["2 hour limit"], "Fisherman's Wharf"),
    ("Chinatown", "Grant Ave & Washington St, San Francisco, CA",
     37.7941, -122.4070, 275, 8, 5, ["1 hour limit", "No overnight"], "Chinatown"),
    ("Haight-Ashbury", "Haight St & Ashbury St, San Francisco, CA",
     37.7694, -122.4467, 225, 12, 9, ["2 hour limit"], "Haight-Ashbury"),
    ("Pacific Heights", "Fillmore St & California St, San Francisco, CA",
     37.7895, -122.4340, 350, 6, 4, ["2 hour limit"], "Pacific Heights"),
    ("SoMa", "Howard St & 2nd St, San Francisco, CA",
     37.7869, -122.3980, 325, 18, 14, ["4 hour limit"], "SoMa"),
]


def demo_spots() -> list[Spot]:
    now = utc_now()
    return [
        Spot(
            id=generate_id("spot"),
            name=name,
            address=address,
            lat=lat,
            lng=lng,
            rate_cents=rate,
            total_spots=total,
            available_spots=available,
            zone=zone,
            restrictions=list(restrictions),
            last_updated=now,
        )
        for name, address, lat, lng, rate, total, available, restrictions, zone in SF_SPOTS
    ]


async def seed_spots(db: AsyncSession, repo: SpotRepositoryProtocol) -> int:
    """Insert the demo spots unless any spot exists. Returns the number inserted."""
    if await repo.count(db) > 0:
        logger.info("Parking spots already present, skipping seed")
        return 0
    spots = demo_spots()
    try:
        for spot in spots:
            await repo.insert(db, spot)
        await db.commit()
    except Exception:
        await db.rollback()
        raise
    logger.info("Seeded %d parking spots", len(spots))
    return len(spots)
