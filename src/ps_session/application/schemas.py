"""Pydantic schemas for ps_session API.

Range checks on plate/duration/cost are left to the domain layer so that
they surface with the 1xxx error codes instead of generic body errors.
"""

from datetime import datetime

from pydantic import BaseModel, Field

from src.ps_common.cents import cents_to_display
from src.ps_session.application.coordinator import SessionHistory
from src.ps_session.domain.models import ParkingSession, PlateStatistics, SessionView

# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class CreateSessionRequest(BaseModel):
    license_plate: str
    spot_id: str
    duration_minutes: int = Field(..., description="1-1440 minutes")
    declared_cost_cents: int = Field(..., description="Parking cost excluding the platform fee")


class ExtendSessionRequest(BaseModel):
    additional_minutes: int
    additional_cost_cents: int = 0


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class SessionResponse(BaseModel):
    id: str
    license_plate: str
    spot_id: str
    duration_minutes: int
    start_time: datetime
    end_time: datetime
    total_cost_cents: int
    total_cost_display: str
    fee_paid_cents: int
    fee_saved_cents: int
    status: str
    payment_id: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_domain(cls, session: ParkingSession) -> "SessionResponse":
        return cls(
            id=session.id,
            license_plate=session.license_plate,
            spot_id=session.spot_id,
            duration_minutes=session.duration_minutes,
            start_time=session.start_time,
            end_time=session.end_time,
            total_cost_cents=session.total_cost_cents,
            total_cost_display=cents_to_display(session.total_cost_cents),
            fee_paid_cents=session.fee_paid_cents,
            fee_saved_cents=session.fee_saved_cents,
            status=session.status,
            payment_id=session.payment_id,
            created_at=session.created_at,
            updated_at=session.updated_at,
        )


class ActiveSessionResponse(SessionResponse):
    time_remaining_seconds: int
    is_expired: bool

    @classmethod
    def from_view(cls, view: SessionView) -> "ActiveSessionResponse":
        base = SessionResponse.from_domain(view.session).model_dump()
        return cls(
            **base,
            time_remaining_seconds=view.time_remaining_seconds,
            is_expired=view.is_expired,
        )


class SessionHistoryResponse(BaseModel):
    items: list[SessionResponse]
    page: int
    limit: int
    total: int
    pages: int

    @classmethod
    def from_history(cls, history: SessionHistory) -> "SessionHistoryResponse":
        return cls(
            items=[SessionResponse.from_domain(s) for s in history.items],
            page=history.page,
            limit=history.limit,
            total=history.total,
            pages=history.pages,
        )


class PlateStatisticsResponse(BaseModel):
    license_plate: str
    total_sessions: int
    active_sessions: int
    total_spent_cents: int
    total_fees_cents: int
    total_saved_cents: int
    total_saved_display: str

    @classmethod
    def build(cls, plate: str, stats: PlateStatistics) -> "PlateStatisticsResponse":
        return cls(
            license_plate=plate,
            total_sessions=stats.total_sessions,
            active_sessions=stats.active_sessions,
            total_spent_cents=stats.total_spent_cents,
            total_fees_cents=stats.total_fees_cents,
            total_saved_cents=stats.total_saved_cents,
            total_saved_display=cents_to_display(stats.total_saved_cents),
        )
