"""Pydantic schemas for ps_spot API."""

from datetime import datetime

from pydantic import BaseModel, Field

from src.ps_common.cents import cents_to_display
from src.ps_spot.domain.models import Spot, SpotTotals

# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class UpdateAvailabilityRequest(BaseModel):
    # Any integer is accepted; the ledger saturates it into [0, total_spots].
    available_spots: int = Field(..., description="New available count (clamped)")


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class SpotResponse(BaseModel):
    id: str
    name: str
    address: str
    lat: float
    lng: float
    rate_cents: int
    rate_display: str
    total_spots: int
    available_spots: int
    available: bool
    occupancy_percentage: float
    zone: str
    restrictions: list[str]
    is_active: bool
    last_updated: datetime | None = None

    @classmethod
    def from_domain(cls, spot: Spot) -> "SpotResponse":
        return cls(
            id=spot.id,
            name=spot.name,
            address=spot.address,
            lat=spot.lat,
            lng=spot.lng,
            rate_cents=spot.rate_cents,
            rate_display=cents_to_display(spot.rate_cents),
            total_spots=spot.total_spots,
            available_spots=spot.available_spots,
            available=spot.is_available,
            occupancy_percentage=round(spot.occupancy_percentage, 2),
            zone=spot.zone,
            restrictions=spot.restrictions,
            is_active=spot.is_active,
            last_updated=spot.last_updated,
        )


class SpotListResponse(BaseModel):
    items: list[SpotResponse]
    count: int


class ParkingStatisticsResponse(BaseModel):
    total_spots: int
    available_spots: int
    active_sessions: int
    total_revenue_cents: int
    total_revenue_display: str
    total_fees_saved_cents: int
    total_fees_saved_display: str
    occupancy_rate: float

    @classmethod
    def build(
        cls,
        totals: SpotTotals,
        active_sessions: int,
        revenue_cents: int,
        fees_saved_cents: int,
    ) -> "ParkingStatisticsResponse":
        return cls(
            total_spots=totals.total_capacity,
            available_spots=totals.available,
            active_sessions=active_sessions,
            total_revenue_cents=revenue_cents,
            total_revenue_display=cents_to_display(revenue_cents),
            total_fees_saved_cents=fees_saved_cents,
            total_fees_saved_display=cents_to_display(fees_saved_cents),
            occupancy_rate=round(totals.occupancy_rate, 2),
        )
