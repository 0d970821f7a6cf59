"""SessionCoordinator tests over the in-memory fakes.

Covers creation (with and without an up-front charge), compensation when a
later step fails, extension, cancellation, lookup and history.
"""

import asyncio
from datetime import timedelta
from unittest.mock import AsyncMock

import pytest

from src.ps_common.errors import (
    ChargeError,
    InvalidAmountError,
    InvalidDurationError,
    InvalidPlateError,
    PaymentTimeoutError,
    PlateAlreadyActiveError,
    SessionNotActiveError,
    SessionNotFoundError,
    SpotNotFoundError,
    SpotUnavailableError,
)
from src.ps_session.domain.models import compute_end_time
from tests.fakes import FakeDB, FakeGateway, World, make_spot


def _world(total: int = 3, **kwargs) -> World:
    return World(make_spot("s1", total=total), make_spot("s2", total=2), **kwargs)


class TestCreateSession:
    async def test_reserves_and_persists(self) -> None:
        world = _world()

        session = await world.coordinator.create_session(world.db, "abc123", "s1", 60, 250)

        assert session.license_plate == "ABC123"
        assert session.status == "active"
        assert session.end_time == session.start_time + timedelta(minutes=60)
        assert session.fee_paid_cents == 5
        assert session.fee_saved_cents == 32
        assert session.payment_id is None
        assert world.available("s1") == 2
        assert session.id in world.session_repo.sessions
        assert world.publisher.events == [("s1", 2)]

    @pytest.mark.parametrize("minutes", [0, 1441])
    async def test_duration_out_of_range_touches_nothing(self, minutes: int) -> None:
        world = _world()

        with pytest.raises(InvalidDurationError):
            await world.coordinator.create_session(world.db, "ABC123", "s1", minutes, 250)

        assert world.available("s1") == 3
        assert world.session_repo.sessions == {}

    @pytest.mark.parametrize("minutes", [1, 1440])
    async def test_duration_bounds_accepted(self, minutes: int) -> None:
        world = _world()
        session = await world.coordinator.create_session(world.db, "ABC123", "s1", minutes, 0)
        assert session.duration_minutes == minutes

    async def test_invalid_plate(self) -> None:
        world = _world()
        with pytest.raises(InvalidPlateError):
            await world.coordinator.create_session(world.db, "A", "s1", 60, 250)
        assert world.available("s1") == 3

    async def test_negative_cost(self) -> None:
        world = _world()
        with pytest.raises(InvalidAmountError):
            await world.coordinator.create_session(world.db, "ABC123", "s1", 60, -1)

    async def test_unknown_spot(self) -> None:
        world = _world()
        with pytest.raises(SpotNotFoundError):
            await world.coordinator.create_session(world.db, "ABC123", "nope", 60, 250)
        assert world.session_repo.sessions == {}

    async def test_plate_with_active_session_rejected(self) -> None:
        world = _world()
        await world.coordinator.create_session(world.db, "ABC123", "s1", 60, 250)

        with pytest.raises(PlateAlreadyActiveError):
            await world.coordinator.create_session(world.db, "abc123", "s2", 60, 250)

        assert world.available("s2") == 2

    async def test_last_unit_contended(self) -> None:
        world = World(make_spot("s1", total=1))

        results = await asyncio.gather(
            world.coordinator.create_session(FakeDB(), "AAA111", "s1", 60, 250),
            world.coordinator.create_session(FakeDB(), "BBB222", "s1", 60, 250),
            return_exceptions=True,
        )

        created = [r for r in results if not isinstance(r, Exception)]
        rejected = [r for r in results if isinstance(r, SpotUnavailableError)]
        assert len(created) == 1
        assert len(rejected) == 1
        assert world.available("s1") == 0
        assert len(world.session_repo.sessions) == 1

    async def test_same_plate_concurrently_on_two_spots(self) -> None:
        world = _world()

        results = await asyncio.gather(
            world.coordinator.create_session(FakeDB(), "ABC123", "s1", 60, 250),
            world.coordinator.create_session(FakeDB(), "ABC123", "s2", 60, 250),
            return_exceptions=True,
        )

        created = [r for r in results if not isinstance(r, Exception)]
        assert len(created) == 1
        assert sum(isinstance(r, PlateAlreadyActiveError) for r in results) == 1
        # The loser's reservation was handed back.
        assert world.available("s1") + world.available("s2") == 3 + 2 - 1


class TestCreateWithCharge:
    async def test_charges_cost_plus_fee(self) -> None:
        world = _world()

        session = await world.coordinator.create_session(
            world.db, "ABC123", "s1", 120, 500, payment_method_id="pm_card_visa"
        )

        amount, metadata = world.gateway.authorized[0]
        assert amount == 505
        assert metadata["session_id"] == session.id
        assert metadata["license_plate"] == "ABC123"
        assert metadata["duration_minutes"] == "120"
        payment = world.payment_repo.payments[session.payment_id]
        assert payment.status == "succeeded"
        assert payment.amount_cents == 500
        assert payment.fee_cents == 5
        assert payment.total_cents == 505
        assert payment.session_id == session.id
        assert payment.charge_ref == "pi_test_1"

    async def test_decline_releases_spot(self) -> None:
        world = _world(gateway=FakeGateway("decline"))

        with pytest.raises(ChargeError):
            await world.coordinator.create_session(
                world.db, "ABC123", "s1", 60, 250, payment_method_id="pm_card_declined"
            )

        assert world.available("s1") == 3
        assert world.session_repo.sessions == {}
        assert world.payment_repo.payments == {}
        assert world.publisher.events == [("s1", 2), ("s1", 3)]

    async def test_timeout_releases_spot(self) -> None:
        world = _world(gateway=FakeGateway("hang"), payment_timeout=0.01)

        with pytest.raises(PaymentTimeoutError) as exc_info:
            await world.coordinator.create_session(
                world.db, "ABC123", "s1", 60, 250, payment_method_id="pm_card_visa"
            )

        assert exc_info.value.http_status == 504
        assert world.available("s1") == 3
        assert world.session_repo.sessions == {}
        assert world.gateway.refunded == []

    async def test_store_failure_after_charge_refunds(self) -> None:
        world = _world()
        world.session_repo.insert = AsyncMock(side_effect=RuntimeError("disk full"))

        with pytest.raises(RuntimeError):
            await world.coordinator.create_session(
                world.db, "ABC123", "s1", 60, 250, payment_method_id="pm_card_visa"
            )

        assert world.gateway.refunded == ["pi_test_1"]
        assert world.available("s1") == 3
        assert world.payment_repo.payments == {}
        assert world.db.rollbacks >= 1

    async def test_failed_refund_does_not_mask_original_error(self) -> None:
        world = _world()
        world.gateway.refund_error = "provider down"
        world.session_repo.insert = AsyncMock(side_effect=RuntimeError("disk full"))

        with pytest.raises(RuntimeError, match="disk full"):
            await world.coordinator.create_session(
                world.db, "ABC123", "s1", 60, 250, payment_method_id="pm_card_visa"
            )
        assert world.available("s1") == 3

    async def test_charge_keyed_by_session(self) -> None:
        world = _world()

        session = await world.coordinator.create_session(
            world.db, "ABC123", "s1", 60, 250, payment_method_id="pm_card_visa"
        )

        assert world.gateway.authorize_keys == [f"charge-{session.id}"]

    async def test_charge_completing_after_timeout_is_refunded(self) -> None:
        world = _world(gateway=FakeGateway("charge_then_hang"), payment_timeout=0.01)

        with pytest.raises(PaymentTimeoutError):
            await world.coordinator.create_session(
                world.db, "ABC123", "s1", 60, 250, payment_method_id="pm_card_visa"
            )

        assert world.gateway.refunded == ["pi_test_1"]
        assert world.gateway.refund_keys == ["refund-pi_test_1"]
        assert world.available("s1") == 3
        assert world.session_repo.sessions == {}
        assert world.payment_repo.payments == {}

    async def test_failed_payment_insert_leaves_no_session(self) -> None:
        world = _world()
        world.payment_repo.insert = AsyncMock(side_effect=RuntimeError("connection reset"))

        with pytest.raises(RuntimeError):
            await world.coordinator.create_session(
                world.db, "ABC123", "s1", 60, 250, payment_method_id="pm_card_visa"
            )

        assert world.session_repo.sessions == {}
        assert world.available("s1") == 3
        assert world.gateway.refunded == ["pi_test_1"]

    async def test_failed_commit_leaves_no_session(self) -> None:
        world = _world()
        db = FakeDB()
        db.fail_commit_number = 2  # the reserve commits first

        with pytest.raises(RuntimeError, match="commit failed"):
            await world.coordinator.create_session(db, "ABC123", "s1", 60, 250)

        assert world.session_repo.sessions == {}
        assert world.available("s1") == 3
        assert db.pending_writes == 0
        # The plate is free again.
        await world.coordinator.create_session(world.db, "ABC123", "s1", 60, 250)


class TestExtendSession:
    async def test_extends_and_recomputes_end(self) -> None:
        world = _world()
        session = await world.coordinator.create_session(world.db, "ABC123", "s1", 60, 250)

        extended = await world.coordinator.extend_session(world.db, session.id, 30, 125)

        assert extended.duration_minutes == 90
        assert extended.end_time == compute_end_time(extended.start_time, 90)
        assert extended.total_cost_cents == 375
        assert world.available("s1") == 2

    async def test_total_duration_capped_at_a_day(self) -> None:
        world = _world()
        session = await world.coordinator.create_session(world.db, "ABC123", "s1", 1440, 500)

        with pytest.raises(InvalidDurationError):
            await world.coordinator.extend_session(world.db, session.id, 1440, 0)

        stored = world.session_repo.sessions[session.id]
        assert stored.duration_minutes == 1440
        assert stored.end_time == session.end_time
        assert stored.total_cost_cents == 500

    async def test_extension_up_to_exactly_a_day(self) -> None:
        world = _world()
        session = await world.coordinator.create_session(world.db, "ABC123", "s1", 1380, 0)

        extended = await world.coordinator.extend_session(world.db, session.id, 60, 0)

        assert extended.duration_minutes == 1440
        with pytest.raises(InvalidDurationError):
            await world.coordinator.extend_session(world.db, session.id, 1, 0)

    async def test_concurrent_extensions_both_apply(self) -> None:
        world = _world()
        session = await world.coordinator.create_session(world.db, "ABC123", "s1", 60, 100)

        await asyncio.gather(
            world.coordinator.extend_session(FakeDB(), session.id, 30, 50),
            world.coordinator.extend_session(FakeDB(), session.id, 15, 25),
        )

        stored = world.session_repo.sessions[session.id]
        assert stored.duration_minutes == 105
        assert stored.total_cost_cents == 175
        assert stored.end_time == compute_end_time(stored.start_time, 105)

    async def test_cancelled_session_rejected(self) -> None:
        world = _world()
        session = await world.coordinator.create_session(world.db, "ABC123", "s1", 60, 250)
        await world.coordinator.cancel_session(world.db, session.id)

        with pytest.raises(SessionNotActiveError) as exc_info:
            await world.coordinator.extend_session(world.db, session.id, 30, 0)

        assert exc_info.value.code == 3003
        assert world.session_repo.sessions[session.id].duration_minutes == 60

    @pytest.mark.parametrize("minutes", [0, 1441])
    async def test_additional_minutes_bounds(self, minutes: int) -> None:
        world = _world()
        session = await world.coordinator.create_session(world.db, "ABC123", "s1", 60, 250)
        with pytest.raises(InvalidDurationError):
            await world.coordinator.extend_session(world.db, session.id, minutes, 0)

    async def test_unknown_session(self) -> None:
        world = _world()
        with pytest.raises(SessionNotFoundError):
            await world.coordinator.extend_session(world.db, "ses_missing", 30, 0)

    async def test_failed_commit_leaves_session_unchanged(self) -> None:
        world = _world()
        session = await world.coordinator.create_session(world.db, "ABC123", "s1", 60, 250)
        db = FakeDB()
        db.fail_commit_number = 1

        with pytest.raises(RuntimeError, match="commit failed"):
            await world.coordinator.extend_session(db, session.id, 30, 125)

        stored = world.session_repo.sessions[session.id]
        assert stored.duration_minutes == 60
        assert stored.end_time == session.end_time
        assert stored.total_cost_cents == 250


class TestCancelSession:
    async def test_round_trip_restores_availability(self) -> None:
        world = _world()
        session = await world.coordinator.create_session(world.db, "ABC123", "s1", 60, 250)

        cancelled = await world.coordinator.cancel_session(world.db, session.id)

        assert cancelled.status == "cancelled"
        assert world.available("s1") == 3
        assert world.publisher.events == [("s1", 2), ("s1", 3)]

    async def test_plate_free_after_cancel(self) -> None:
        world = _world()
        session = await world.coordinator.create_session(world.db, "ABC123", "s1", 60, 250)
        await world.coordinator.cancel_session(world.db, session.id)

        again = await world.coordinator.create_session(world.db, "ABC123", "s2", 60, 250)

        assert again.status == "active"

    async def test_second_cancel_rejected_without_double_release(self) -> None:
        world = _world()
        session = await world.coordinator.create_session(world.db, "ABC123", "s1", 60, 250)
        await world.coordinator.cancel_session(world.db, session.id)

        with pytest.raises(SessionNotActiveError):
            await world.coordinator.cancel_session(world.db, session.id)

        assert world.available("s1") == 3

    async def test_concurrent_cancels_release_once(self) -> None:
        world = World(make_spot("s1", total=2))
        session = await world.coordinator.create_session(world.db, "ABC123", "s1", 60, 250)
        await world.coordinator.create_session(world.db, "XYZ789", "s1", 60, 250)

        results = await asyncio.gather(
            world.coordinator.cancel_session(FakeDB(), session.id),
            world.coordinator.cancel_session(FakeDB(), session.id),
            return_exceptions=True,
        )

        assert sum(isinstance(r, SessionNotActiveError) for r in results) == 1
        assert world.available("s1") == 1

    async def test_failed_release_rolls_back_cancel(self) -> None:
        world = _world()
        session = await world.coordinator.create_session(world.db, "ABC123", "s1", 60, 250)
        world.spot_repo.increment_available = AsyncMock(
            side_effect=RuntimeError("connection reset")
        )

        with pytest.raises(RuntimeError):
            await world.coordinator.cancel_session(world.db, session.id)

        assert world.session_repo.sessions[session.id].status == "active"
        assert world.available("s1") == 2

        del world.spot_repo.increment_available
        cancelled = await world.coordinator.cancel_session(world.db, session.id)
        assert cancelled.status == "cancelled"
        assert world.available("s1") == 3


class TestLookupActive:
    async def test_lowercase_plate_finds_session(self) -> None:
        world = _world()
        session = await world.coordinator.create_session(world.db, "ABC123", "s1", 60, 250)
        world.clock.advance(minutes=15)

        view = await world.coordinator.lookup_active(world.db, "abc123")

        assert view is not None
        assert view.session.id == session.id
        assert view.time_remaining_seconds == 45 * 60
        assert view.is_expired is False

    async def test_invalid_plate_is_none(self) -> None:
        world = _world()
        assert await world.coordinator.lookup_active(world.db, "!!") is None

    async def test_lapsed_but_unswept_is_none(self) -> None:
        world = _world()
        await world.coordinator.create_session(world.db, "ABC123", "s1", 60, 250)
        world.clock.advance(minutes=61)

        assert await world.coordinator.lookup_active(world.db, "ABC123") is None

    async def test_no_session(self) -> None:
        world = _world()
        assert await world.coordinator.lookup_active(world.db, "ABC123") is None


class TestHistory:
    async def test_paginates_newest_first(self) -> None:
        world = _world()
        ids = []
        for _ in range(3):
            session = await world.coordinator.create_session(world.db, "ABC123", "s1", 30, 100)
            ids.append(session.id)
            await world.coordinator.cancel_session(world.db, session.id)
            world.clock.advance(minutes=1)

        first = await world.coordinator.list_history(world.db, "abc123", page=1, limit=2)
        second = await world.coordinator.list_history(world.db, "ABC123", page=2, limit=2)

        assert [s.id for s in first.items] == [ids[2], ids[1]]
        assert [s.id for s in second.items] == [ids[0]]
        assert first.total == 3
        assert first.pages == 2

    async def test_status_filter(self) -> None:
        world = _world()
        old = await world.coordinator.create_session(world.db, "ABC123", "s1", 30, 100)
        await world.coordinator.cancel_session(world.db, old.id)
        await world.coordinator.create_session(world.db, "ABC123", "s1", 30, 100)

        history = await world.coordinator.list_history(world.db, "ABC123", status="cancelled")

        assert [s.id for s in history.items] == [old.id]
        assert history.total == 1

    async def test_plate_statistics(self) -> None:
        world = _world()
        cancelled = await world.coordinator.create_session(world.db, "ABC123", "s1", 30, 100)
        await world.coordinator.cancel_session(world.db, cancelled.id)
        await world.coordinator.create_session(world.db, "ABC123", "s1", 60, 250)

        stats = await world.coordinator.plate_statistics(world.db, "abc123")

        assert stats.total_sessions == 2
        assert stats.active_sessions == 1
        assert stats.total_spent_cents == 250
        assert stats.total_fees_cents == 5
        assert stats.total_saved_cents == 32
