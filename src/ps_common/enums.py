"""Global enums — must match DB CHECK constraints exactly."""

from enum import Enum


class SessionStatus(str, Enum):
    ACTIVE = "active"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    REFUNDED = "refunded"


class ProviderEventType(str, Enum):
    """Inbound payment-provider events the service reacts to."""
    CHARGE_SUCCEEDED = "payment_intent.succeeded"
    CHARGE_FAILED = "payment_intent.payment_failed"
