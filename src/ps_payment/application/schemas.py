"""Pydantic schemas for ps_payment API."""

from datetime import datetime

from pydantic import BaseModel

from src.ps_common.cents import cents_to_display
from src.ps_payment.domain.models import Payment
from src.ps_session.application.schemas import SessionResponse

# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class CreateChargeRequest(BaseModel):
    license_plate: str
    spot_id: str
    duration_minutes: int
    declared_cost_cents: int


class ProcessPaymentRequest(CreateChargeRequest):
    payment_method_id: str


class ConfirmChargeRequest(BaseModel):
    charge_ref: str


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class PaymentResponse(BaseModel):
    id: str
    session_id: str | None
    license_plate: str
    amount_cents: int
    fee_cents: int
    total_cents: int
    total_display: str
    status: str
    charge_ref: str | None
    spot_id: str | None
    duration_minutes: int | None
    receipt_url: str | None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_domain(cls, payment: Payment) -> "PaymentResponse":
        return cls(
            id=payment.id,
            session_id=payment.session_id,
            license_plate=payment.license_plate,
            amount_cents=payment.amount_cents,
            fee_cents=payment.fee_cents,
            total_cents=payment.total_cents,
            total_display=cents_to_display(payment.total_cents),
            status=payment.status,
            charge_ref=payment.charge_ref,
            spot_id=payment.spot_id,
            duration_minutes=payment.duration_minutes,
            receipt_url=payment.receipt_url,
            created_at=payment.created_at,
            updated_at=payment.updated_at,
        )


class PaidSessionResponse(BaseModel):
    payment: PaymentResponse
    session: SessionResponse


class PendingChargeResponse(BaseModel):
    payment: PaymentResponse
    client_secret: str | None


class RefundResponse(BaseModel):
    payment: PaymentResponse
    session_cancel_pending: bool


class WebhookAck(BaseModel):
    received: bool = True
    action: str
