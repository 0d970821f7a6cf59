"""Payment domain model — pure dataclass, no SQLAlchemy dependency.

Status machine (monotonic):
    pending   -> succeeded | failed
    succeeded -> refunded
failed and refunded are terminal.
"""

from dataclasses import dataclass
from datetime import datetime

from src.ps_common.enums import PaymentStatus

ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    PaymentStatus.PENDING.value: frozenset(
        {PaymentStatus.SUCCEEDED.value, PaymentStatus.FAILED.value}
    ),
    PaymentStatus.SUCCEEDED.value: frozenset({PaymentStatus.REFUNDED.value}),
    PaymentStatus.FAILED.value: frozenset(),
    PaymentStatus.REFUNDED.value: frozenset(),
}


def can_transition(from_status: str, to_status: str) -> bool:
    return to_status in ALLOWED_TRANSITIONS.get(from_status, frozenset())


@dataclass
class Payment:
    id: str
    license_plate: str
    amount_cents: int        # declared parking cost, excluding fee
    fee_cents: int           # platform fee charged on top
    status: str
    charge_ref: str | None = None       # provider's charge / payment-intent id
    session_id: str | None = None       # null while a client-confirmed charge is pending
    spot_id: str | None = None
    duration_minutes: int | None = None
    payment_method: str | None = None
    receipt_url: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def total_cents(self) -> int:
        return self.amount_cents + self.fee_cents
