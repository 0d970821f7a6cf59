"""SessionRepository Protocol: interface contract for persistence layer."""

from datetime import datetime
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.ps_session.domain.models import ParkingSession, PlateStatistics, SessionTotals


class SessionRepositoryProtocol(Protocol):
    async def insert(self, db: AsyncSession, session: ParkingSession) -> None:
        """Raises PlateAlreadyActiveError if the plate already has an active row."""
        ...

    async def get_by_id(self, db: AsyncSession, session_id: str) -> ParkingSession | None: ...

    async def find_active_by_plate(
        self, db: AsyncSession, plate: str
    ) -> ParkingSession | None: ...

    async def apply_extension(
        self,
        db: AsyncSession,
        session_id: str,
        previous_duration: int,
        duration_minutes: int,
        end_time: datetime,
        total_cost_cents: int,
        now: datetime,
    ) -> ParkingSession | None:
        """CAS on status='active' and the duration the caller read.

        None if the session is gone, no longer active, or was extended concurrently.
        """
        ...

    async def transition_status(
        self,
        db: AsyncSession,
        session_id: str,
        from_status: str,
        to_status: str,
        now: datetime,
    ) -> ParkingSession | None:
        """CAS on status=from_status; None if the precondition failed."""
        ...

    async def list_expired(
        self, db: AsyncSession, now: datetime, limit: int
    ) -> list[ParkingSession]: ...

    async def list_by_plate(
        self,
        db: AsyncSession,
        plate: str,
        status: str | None,
        offset: int,
        limit: int,
    ) -> list[ParkingSession]: ...

    async def count_by_plate(
        self, db: AsyncSession, plate: str, status: str | None
    ) -> int: ...

    async def plate_statistics(self, db: AsyncSession, plate: str) -> PlateStatistics: ...

    async def totals(self, db: AsyncSession) -> SessionTotals: ...
