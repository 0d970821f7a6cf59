"""SpotRepository: concrete implementation of SpotRepositoryProtocol.

All counter mutations are single atomic UPDATE ... RETURNING statements whose
WHERE clause carries the precondition. 0 rows means the spot is missing or the
precondition failed; two concurrent reservations can never both pass
`available_spots > 0` for the last unit.

Transaction ownership: the CALLER (AvailabilityLedger) commits or rolls back.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.ps_spot.domain.models import Spot, SpotQuery, SpotTotals

_COLUMNS = """
    id, name, address, lat, lng, rate_cents, total_spots, available_spots,
    zone, restrictions, is_active, last_updated, created_at, updated_at
"""

# ---------------------------------------------------------------------------
# SQL: counter mutations
# ---------------------------------------------------------------------------

_DECREMENT_SQL = text(f"""
    UPDATE parking_spots
    SET available_spots = available_spots - 1,
        last_updated = :now,
        updated_at = :now
    WHERE id = :spot_id AND is_active AND available_spots > 0
    RETURNING {_COLUMNS}
""")

_INCREMENT_SQL = text(f"""
    UPDATE parking_spots
    SET available_spots = LEAST(total_spots, available_spots + 1),
        last_updated = :now,
        updated_at = :now
    WHERE id = :spot_id
    RETURNING {_COLUMNS}
""")

_SET_AVAILABLE_SQL = text(f"""
    UPDATE parking_spots
    SET available_spots = GREATEST(0, LEAST(total_spots, :value)),
        last_updated = :now,
        updated_at = :now
    WHERE id = :spot_id
    RETURNING {_COLUMNS}
""")

# ---------------------------------------------------------------------------
# SQL: queries
# ---------------------------------------------------------------------------

_GET_SPOT_SQL = text(f"SELECT {_COLUMNS} FROM parking_spots WHERE id = :spot_id")

_LIST_SPOTS_SQL = text(f"""
    SELECT {_COLUMNS}
    FROM parking_spots
    WHERE (:include_inactive OR is_active)
      AND (CAST(:zone AS TEXT) IS NULL OR zone = :zone)
      AND (CAST(:min_lat AS DOUBLE PRECISION) IS NULL
           OR (lat BETWEEN :min_lat AND :max_lat AND lng BETWEEN :min_lng AND :max_lng))
    ORDER BY name ASC
""")

_TOTALS_SQL = text("""
    SELECT COUNT(*) AS spot_count,
           COALESCE(SUM(total_spots), 0) AS total_capacity,
           COALESCE(SUM(available_spots), 0) AS available
    FROM parking_spots
    WHERE is_active
""")

_COUNT_SQL = text("SELECT COUNT(*) AS n FROM parking_spots")

_INSERT_SQL = text("""
    INSERT INTO parking_spots
        (id, name, address, lat, lng, rate_cents, total_spots, available_spots,
         zone, restrictions, is_active, last_updated)
    VALUES
        (:id, :name, :address, :lat, :lng, :rate_cents, :total_spots, :available_spots,
         :zone, :restrictions, :is_active, :last_updated)
""")


def _row_to_spot(row: Any) -> Spot:
    return Spot(
        id=row.id,
        name=row.name,
        address=row.address,
        lat=float(row.lat),
        lng=float(row.lng),
        rate_cents=row.rate_cents,
        total_spots=row.total_spots,
        available_spots=row.available_spots,
        zone=row.zone,
        restrictions=list(row.restrictions or []),
        is_active=row.is_active,
        last_updated=row.last_updated,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


class SpotRepository:
    """Counter updates are atomic at the SQL level."""

    async def get_by_id(self, db: AsyncSession, spot_id: str) -> Spot | None:
        row = (await db.execute(_GET_SPOT_SQL, {"spot_id": spot_id})).fetchone()
        return _row_to_spot(row) if row else None

    async def list_spots(self, db: AsyncSession, query: SpotQuery) -> list[Spot]:
        bbox = query.bbox
        result = await db.execute(
            _LIST_SPOTS_SQL,
            {
                "include_inactive": query.include_inactive,
                "zone": query.zone,
                "min_lat": bbox.min_lat if bbox else None,
                "max_lat": bbox.max_lat if bbox else None,
                "min_lng": bbox.min_lng if bbox else None,
                "max_lng": bbox.max_lng if bbox else None,
            },
        )
        return [_row_to_spot(row) for row in result.fetchall()]

    async def decrement_available(
        self, db: AsyncSession, spot_id: str, now: datetime
    ) -> Spot | None:
        row = (await db.execute(_DECREMENT_SQL, {"spot_id": spot_id, "now": now})).fetchone()
        return _row_to_spot(row) if row else None

    async def increment_available(
        self, db: AsyncSession, spot_id: str, now: datetime
    ) -> Spot | None:
        row = (await db.execute(_INCREMENT_SQL, {"spot_id": spot_id, "now": now})).fetchone()
        return _row_to_spot(row) if row else None

    async def set_available(
        self, db: AsyncSession, spot_id: str, value: int, now: datetime
    ) -> Spot | None:
        row = (
            await db.execute(
                _SET_AVAILABLE_SQL, {"spot_id": spot_id, "value": value, "now": now}
            )
        ).fetchone()
        return _row_to_spot(row) if row else None

    async def get_totals(self, db: AsyncSession) -> SpotTotals:
        row = (await db.execute(_TOTALS_SQL)).fetchone()
        if row is None:
            return SpotTotals(spot_count=0, total_capacity=0, available=0)
        return SpotTotals(
            spot_count=int(row.spot_count),
            total_capacity=int(row.total_capacity),
            available=int(row.available),
        )

    async def count(self, db: AsyncSession) -> int:
        row = (await db.execute(_COUNT_SQL)).fetchone()
        return int(row.n) if row else 0

    async def insert(self, db: AsyncSession, spot: Spot) -> None:
        await db.execute(
            _INSERT_SQL,
            {
                "id": spot.id,
                "name": spot.name,
                "address": spot.address,
                "lat": spot.lat,
                "lng": spot.lng,
                "rate_cents": spot.rate_cents,
                "total_spots": spot.total_spots,
                "available_spots": spot.available_spots,
                "zone": spot.zone,
                "restrictions": spot.restrictions,
                "is_active": spot.is_active,
                "last_updated": spot.last_updated,
            },
        )
