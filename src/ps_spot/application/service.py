"""SpotApplicationService: spot discovery, admin availability and statistics.

Reads go straight to the repository; the one write (availability override)
goes through the AvailabilityLedger so it is clamped and broadcast like every
other counter change.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from src.ps_common.errors import SpotNotFoundError
from src.ps_session.domain.repository import SessionRepositoryProtocol
from src.ps_spot.application.ledger import AvailabilityLedger
from src.ps_spot.application.schemas import (
    ParkingStatisticsResponse,
    SpotListResponse,
    SpotResponse,
)
from src.ps_spot.domain.models import DEFAULT_SEARCH_RADIUS_DEG, BoundingBox, SpotQuery
from src.ps_spot.domain.repository import SpotRepositoryProtocol


class SpotApplicationService:
    def __init__(
        self,
        repo: SpotRepositoryProtocol,
        sessions: SessionRepositoryProtocol,
        ledger: AvailabilityLedger,
    ) -> None:
        self._repo = repo
        self._sessions = sessions
        self._ledger = ledger

    async def list_spots(
        self,
        db: AsyncSession,
        zone: str | None = None,
        lat: float | None = None,
        lng: float | None = None,
        radius: float | None = None,
    ) -> SpotListResponse:
        bbox = None
        # Location filter only applies when both coordinates are given.
        if lat is not None and lng is not None:
            bbox = BoundingBox.around(lat, lng, radius or DEFAULT_SEARCH_RADIUS_DEG)
        spots = await self._repo.list_spots(db, SpotQuery(zone=zone, bbox=bbox))
        return SpotListResponse(
            items=[SpotResponse.from_domain(s) for s in spots], count=len(spots)
        )

    async def get_spot(self, db: AsyncSession, spot_id: str) -> SpotResponse:
        spot = await self._repo.get_by_id(db, spot_id)
        if spot is None:
            raise SpotNotFoundError(spot_id)
        return SpotResponse.from_domain(spot)

    async def update_availability(
        self, db: AsyncSession, spot_id: str, available_spots: int
    ) -> SpotResponse:
        spot = await self._ledger.set_available(db, spot_id, available_spots)
        return SpotResponse.from_domain(spot)

    async def statistics(self, db: AsyncSession) -> ParkingStatisticsResponse:
        totals = await self._repo.get_totals(db)
        sessions = await self._sessions.totals(db)
        return ParkingStatisticsResponse.build(
            totals,
            active_sessions=sessions.active_sessions,
            revenue_cents=sessions.revenue_cents,
            fees_saved_cents=sessions.fees_saved_cents,
        )
