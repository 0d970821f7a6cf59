"""Domain models for ps_session — pure dataclasses and pure functions.

end_time is never stored independently of start_time/duration: every code
path that changes either input calls compute_end_time().
"""

import re
from dataclasses import dataclass
from datetime import datetime, timedelta

from src.ps_common.datetime_utils import seconds_between
from src.ps_common.enums import SessionStatus
from src.ps_common.errors import InvalidDurationError, InvalidPlateError

MIN_DURATION_MINUTES = 1
MAX_DURATION_MINUTES = 1440  # 24 hours
PLATE_MIN_LEN = 2
PLATE_MAX_LEN = 8

_PLATE_RE = re.compile(r"^[A-Z0-9]+$")


def normalize_plate(raw: str) -> str:
    """Trim + upper-case, then validate [A-Z0-9]{2,8}. Raises InvalidPlateError."""
    plate = (raw or "").strip().upper()
    if not (PLATE_MIN_LEN <= len(plate) <= PLATE_MAX_LEN) or not _PLATE_RE.match(plate):
        raise InvalidPlateError(raw)
    return plate


def validate_duration(minutes: int) -> int:
    if not (MIN_DURATION_MINUTES <= minutes <= MAX_DURATION_MINUTES):
        raise InvalidDurationError(minutes)
    return minutes


def compute_end_time(start_time: datetime, duration_minutes: int) -> datetime:
    return start_time + timedelta(minutes=duration_minutes)


@dataclass(frozen=True)
class FeeSchedule:
    platform_fee_cents: int = 5
    baseline_fee_cents: int = 37

    @property
    def fee_saved_cents(self) -> int:
        return max(0, self.baseline_fee_cents - self.platform_fee_cents)


@dataclass
class ParkingSession:
    id: str
    license_plate: str
    spot_id: str
    duration_minutes: int
    start_time: datetime
    end_time: datetime
    total_cost_cents: int
    fee_paid_cents: int
    fee_saved_cents: int
    status: str = SessionStatus.ACTIVE.value
    payment_id: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_active(self) -> bool:
        return self.status == SessionStatus.ACTIVE

    def covers(self, now: datetime) -> bool:
        """True when now falls inside [start_time, end_time]."""
        return self.start_time <= now <= self.end_time


@dataclass
class SessionView:
    """A session as seen at a given instant."""

    session: ParkingSession
    time_remaining_seconds: int
    is_expired: bool

    @classmethod
    def at(cls, session: ParkingSession, now: datetime) -> "SessionView":
        remaining = seconds_between(now, session.end_time)
        return cls(session=session, time_remaining_seconds=remaining, is_expired=remaining == 0)


@dataclass
class PlateStatistics:
    total_sessions: int = 0
    active_sessions: int = 0
    total_spent_cents: int = 0
    total_fees_cents: int = 0
    total_saved_cents: int = 0


@dataclass
class SessionTotals:
    active_sessions: int = 0
    revenue_cents: int = 0
    fees_saved_cents: int = 0
