"""ps_payment REST API: charges, confirmation, refunds and the provider webhook."""

from typing import Annotated

from fastapi import APIRouter, Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.container import Container, get_container
from src.ps_common.database import get_db_session
from src.ps_common.response import ApiResponse, success_for
from src.ps_payment.application.schemas import (
    ConfirmChargeRequest,
    CreateChargeRequest,
    PaidSessionResponse,
    PaymentResponse,
    PendingChargeResponse,
    ProcessPaymentRequest,
    RefundResponse,
    WebhookAck,
)
from src.ps_session.application.schemas import SessionResponse

router = APIRouter(prefix="/payments", tags=["payments"])


@router.post("/process", status_code=201)
async def process_payment(
    body: ProcessPaymentRequest,
    container: Annotated[Container, Depends(get_container)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    paid = await container.payments.process_payment(
        db,
        body.license_plate,
        body.spot_id,
        body.duration_minutes,
        body.declared_cost_cents,
        body.payment_method_id,
    )
    data = PaidSessionResponse(
        payment=PaymentResponse.from_domain(paid.payment),
        session=SessionResponse.from_domain(paid.session),
    )
    return success_for(request, data.model_dump(), "Payment processed successfully")


@router.post("/intents", status_code=201)
async def create_charge(
    body: CreateChargeRequest,
    container: Annotated[Container, Depends(get_container)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    pending = await container.payments.create_charge(
        db,
        body.license_plate,
        body.spot_id,
        body.duration_minutes,
        body.declared_cost_cents,
    )
    data = PendingChargeResponse(
        payment=PaymentResponse.from_domain(pending.payment),
        client_secret=pending.client_secret,
    )
    return success_for(request, data.model_dump())


@router.post("/confirm")
async def confirm_charge(
    body: ConfirmChargeRequest,
    container: Annotated[Container, Depends(get_container)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    payment = await container.payments.confirm_charge(db, body.charge_ref)
    return success_for(request, PaymentResponse.from_domain(payment).model_dump())


@router.post("/webhook")
async def webhook(
    container: Annotated[Container, Depends(get_container)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    stripe_signature: Annotated[str | None, Header()] = None,
) -> ApiResponse:
    payload = await request.body()
    action = await container.payments.handle_webhook(db, payload, stripe_signature)
    return success_for(request, WebhookAck(action=action).model_dump())


@router.get("/{payment_id}")
async def get_payment(
    payment_id: str,
    container: Annotated[Container, Depends(get_container)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    payment = await container.payments.get_payment(db, payment_id)
    return success_for(request, PaymentResponse.from_domain(payment).model_dump())


@router.post("/{payment_id}/refund")
async def refund_payment(
    payment_id: str,
    container: Annotated[Container, Depends(get_container)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    outcome = await container.payments.refund_payment(db, payment_id)
    data = RefundResponse(
        payment=PaymentResponse.from_domain(outcome.payment),
        session_cancel_pending=outcome.session_cancel_pending,
    )
    message = (
        "Refund issued; session cancellation pending"
        if outcome.session_cancel_pending
        else "Payment refunded successfully"
    )
    return success_for(request, data.model_dump(), message)
