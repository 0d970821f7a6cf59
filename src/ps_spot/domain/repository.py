"""SpotRepository Protocol: the persistence contract the services depend on.

Unit tests inject a mock (or the in-memory fake) that conforms to this
Protocol. Infrastructure layer provides the real implementation.

Counter mutations are compare-and-set: they return None instead of raising
when the row is missing or the precondition does not hold, and the caller
decides which error that means.
"""

from datetime import datetime
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.ps_spot.domain.models import Spot, SpotQuery, SpotTotals


class SpotRepositoryProtocol(Protocol):
    async def get_by_id(self, db: AsyncSession, spot_id: str) -> Spot | None: ...

    async def list_spots(self, db: AsyncSession, query: SpotQuery) -> list[Spot]: ...

    async def decrement_available(
        self, db: AsyncSession, spot_id: str, now: datetime
    ) -> Spot | None: ...

    async def increment_available(
        self, db: AsyncSession, spot_id: str, now: datetime
    ) -> Spot | None: ...

    async def set_available(
        self, db: AsyncSession, spot_id: str, value: int, now: datetime
    ) -> Spot | None: ...

    async def get_totals(self, db: AsyncSession) -> SpotTotals: ...

    async def count(self, db: AsyncSession) -> int: ...

    async def insert(self, db: AsyncSession, spot: Spot) -> None: ...
