"""Tests for ps_session domain models."""

from datetime import UTC, datetime, timedelta

import pytest

from src.ps_common.errors import InvalidDurationError, InvalidPlateError
from src.ps_session.domain.models import (
    FeeSchedule,
    ParkingSession,
    SessionView,
    compute_end_time,
    normalize_plate,
    validate_duration,
)

START = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


def _session(duration: int = 60, status: str = "active") -> ParkingSession:
    return ParkingSession(
        id="ses_1",
        license_plate="ABC123",
        spot_id="spot_1",
        duration_minutes=duration,
        start_time=START,
        end_time=compute_end_time(START, duration),
        total_cost_cents=250,
        fee_paid_cents=5,
        fee_saved_cents=32,
        status=status,
    )


class TestNormalizePlate:
    @pytest.mark.parametrize(
        "raw,expected",
        [("abc123", "ABC123"), ("  7xyz  ", "7XYZ"), ("AB", "AB"), ("ABCD1234", "ABCD1234")],
    )
    def test_valid(self, raw: str, expected: str) -> None:
        assert normalize_plate(raw) == expected

    @pytest.mark.parametrize("raw", ["", "A", "ABCDE12345", "AB-123", "AB 12", "ÄBC1"])
    def test_invalid(self, raw: str) -> None:
        with pytest.raises(InvalidPlateError) as exc_info:
            normalize_plate(raw)
        assert exc_info.value.code == 1001


class TestValidateDuration:
    @pytest.mark.parametrize("minutes", [1, 60, 1440])
    def test_in_range(self, minutes: int) -> None:
        assert validate_duration(minutes) == minutes

    @pytest.mark.parametrize("minutes", [0, -5, 1441])
    def test_out_of_range(self, minutes: int) -> None:
        with pytest.raises(InvalidDurationError):
            validate_duration(minutes)


class TestFeeSchedule:
    def test_defaults(self) -> None:
        fees = FeeSchedule()
        assert fees.platform_fee_cents == 5
        assert fees.baseline_fee_cents == 37
        assert fees.fee_saved_cents == 32

    def test_saved_never_negative(self) -> None:
        assert FeeSchedule(platform_fee_cents=50, baseline_fee_cents=37).fee_saved_cents == 0


class TestSessionWindow:
    def test_end_time_follows_duration(self) -> None:
        assert _session(90).end_time == START + timedelta(minutes=90)

    def test_covers_is_inclusive(self) -> None:
        session = _session(60)
        assert session.covers(START)
        assert session.covers(START + timedelta(minutes=60))
        assert not session.covers(START + timedelta(minutes=60, seconds=1))
        assert not session.covers(START - timedelta(seconds=1))

    def test_is_active(self) -> None:
        assert _session().is_active
        assert not _session(status="cancelled").is_active


class TestSessionView:
    def test_remaining_seconds(self) -> None:
        view = SessionView.at(_session(60), START + timedelta(minutes=15, milliseconds=500))
        assert view.time_remaining_seconds == 45 * 60 - 1
        assert view.is_expired is False

    def test_at_end_time(self) -> None:
        view = SessionView.at(_session(60), START + timedelta(minutes=60))
        assert view.time_remaining_seconds == 0
        assert view.is_expired is True

    def test_past_end_is_clamped(self) -> None:
        view = SessionView.at(_session(60), START + timedelta(hours=3))
        assert view.time_remaining_seconds == 0
