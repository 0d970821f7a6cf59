"""AvailabilityLedger: the only writer of spot capacity counters.

Every reserve/release/set_available is one compare-and-set UPDATE, serialized
per spot by a striped in-process asyncio.Lock, and committed by the ledger itself.
The commit covers whatever the caller already wrote on the same AsyncSession
(e.g. a session status transition), so "session leaves active" and "capacity
comes back" land in one transaction.

After a successful commit the new count is published to the fan-out.
"""

import asyncio
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from src.ps_common.datetime_utils import Clock, utc_now
from src.ps_common.errors import SpotNotFoundError, SpotUnavailableError
from src.ps_realtime.notifier import AvailabilityPublisher
from src.ps_spot.domain.models import Spot, clamp_available
from src.ps_spot.domain.repository import SpotRepositoryProtocol

logger = logging.getLogger(__name__)

_LOCK_STRIPES = 64


class AvailabilityLedger:
    def __init__(
        self,
        repo: SpotRepositoryProtocol,
        publisher: AvailabilityPublisher,
        clock: Clock = utc_now,
    ) -> None:
        self._repo = repo
        self._publisher = publisher
        self._clock = clock
        self._locks = [asyncio.Lock() for _ in range(_LOCK_STRIPES)]

    def _lock_for(self, spot_id: str) -> asyncio.Lock:
        return self._locks[hash(spot_id) % _LOCK_STRIPES]

    async def reserve(self, db: AsyncSession, spot_id: str) -> Spot:
        """Take one unit. Raises SpotNotFoundError / SpotUnavailableError."""
        async with self._lock_for(spot_id):
            try:
                spot = await self._repo.decrement_available(db, spot_id, self._clock())
                if spot is None:
                    current = await self._repo.get_by_id(db, spot_id)
                    if current is None:
                        raise SpotNotFoundError(spot_id)
                    raise SpotUnavailableError(
                        spot_id, current.available_spots, current.is_active
                    )
                await db.commit()
            except Exception:
                await db.rollback()
                raise
        self._announce(spot, "reserve")
        return spot

    async def release(self, db: AsyncSession, spot_id: str) -> Spot:
        """Return one unit, saturating at total_spots. Raises SpotNotFoundError."""
        async with self._lock_for(spot_id):
            try:
                spot = await self._repo.increment_available(db, spot_id, self._clock())
                if spot is None:
                    raise SpotNotFoundError(spot_id)
                await db.commit()
            except Exception:
                await db.rollback()
                raise
        self._announce(spot, "release")
        return spot

    async def set_available(self, db: AsyncSession, spot_id: str, value: int) -> Spot:
        """Administrative override; out-of-range values are clamped, not rejected."""
        async with self._lock_for(spot_id):
            try:
                current = await self._repo.get_by_id(db, spot_id)
                if current is None:
                    raise SpotNotFoundError(spot_id)
                stored = clamp_available(value, current.total_spots)
                spot = await self._repo.set_available(db, spot_id, stored, self._clock())
                if spot is None:
                    raise SpotNotFoundError(spot_id)
                await db.commit()
            except Exception:
                await db.rollback()
                raise
        if spot.available_spots != value:
            logger.info(
                "Clamped availability for %s: requested %d, stored %d",
                spot_id, value, spot.available_spots,
            )
        self._announce(spot, "set")
        return spot

    def _announce(self, spot: Spot, op: str) -> None:
        logger.debug(
            "Ledger %s %s -> %d/%d", op, spot.id, spot.available_spots, spot.total_spots
        )
        try:
            self._publisher.publish(spot.id, spot.available_spots)
        except Exception:
            # Delivery is best effort; the committed counter is the truth.
            logger.warning("Availability publish failed for %s", spot.id, exc_info=True)
