"""Tests for ps_common.enums — values must match the DB CHECK constraints."""

from src.ps_common.enums import PaymentStatus, ProviderEventType, SessionStatus


class TestAllEnumsAreStr:
    """All enums inherit from (str, Enum) for JSON serialization."""

    def test_session_status_is_str(self) -> None:
        assert isinstance(SessionStatus.ACTIVE, str)
        assert SessionStatus.ACTIVE == "active"

    def test_payment_status_is_str(self) -> None:
        assert isinstance(PaymentStatus.SUCCEEDED, str)
        assert PaymentStatus.SUCCEEDED == "succeeded"


class TestSessionStatus:
    def test_all_values(self) -> None:
        assert {s.value for s in SessionStatus} == {"active", "expired", "cancelled"}


class TestPaymentStatus:
    def test_all_values(self) -> None:
        expected = {"pending", "succeeded", "failed", "refunded"}
        assert {p.value for p in PaymentStatus} == expected


class TestProviderEventType:
    def test_stripe_event_names(self) -> None:
        assert ProviderEventType("payment_intent.succeeded") is ProviderEventType.CHARGE_SUCCEEDED
        assert ProviderEventType("payment_intent.payment_failed") is ProviderEventType.CHARGE_FAILED
