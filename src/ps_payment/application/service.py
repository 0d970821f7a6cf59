"""PaymentApplicationService: charge, confirm, refund and webhook flows.

Two ways to pay:
  - process_payment: charge-and-confirm server side, session created in the
    same request by the SessionCoordinator.
  - create_charge + confirm_charge (or the payment_intent.succeeded webhook):
    a pending Payment records the reservation; the session is opened once
    the provider reports the charge succeeded.

Work on one charge is serialized by a striped asyncio.Lock so a client
confirm racing the webhook opens the session once.
"""

import asyncio
import logging
from collections.abc import Awaitable
from dataclasses import dataclass
from typing import TypeVar

from sqlalchemy.ext.asyncio import AsyncSession

from src.ps_common.cents import validate_amount
from src.ps_common.datetime_utils import Clock, utc_now
from src.ps_common.enums import PaymentStatus, ProviderEventType
from src.ps_common.errors import (
    AppError,
    PaymentNotFoundError,
    PaymentStateConflictError,
    PaymentTimeoutError,
    SessionNotActiveError,
)
from src.ps_common.id_generator import generate_id
from src.ps_payment.domain.gateway import (
    ChargeReceipt,
    PaymentGatewayProtocol,
    refund_key,
)
from src.ps_payment.domain.models import Payment, can_transition
from src.ps_payment.domain.repository import PaymentRepositoryProtocol
from src.ps_session.application.coordinator import SessionCoordinator
from src.ps_session.domain.models import ParkingSession, normalize_plate, validate_duration

logger = logging.getLogger(__name__)

_LOCK_STRIPES = 64

T = TypeVar("T")


@dataclass
class PaidSession:
    session: ParkingSession
    payment: Payment


@dataclass
class PendingCharge:
    payment: Payment
    client_secret: str | None


@dataclass
class RefundOutcome:
    payment: Payment
    # True when the refund went through but the session could not be
    # cancelled; calling refund again retries only the cancellation.
    session_cancel_pending: bool


class PaymentApplicationService:
    def __init__(
        self,
        repo: PaymentRepositoryProtocol,
        coordinator: SessionCoordinator,
        gateway: PaymentGatewayProtocol,
        timeout_seconds: float = 15.0,
        clock: Clock = utc_now,
    ) -> None:
        self._repo = repo
        self._coordinator = coordinator
        self._gateway = gateway
        self._timeout = timeout_seconds
        self._clock = clock
        self._locks = [asyncio.Lock() for _ in range(_LOCK_STRIPES)]

    def _lock_for(self, key: str) -> asyncio.Lock:
        return self._locks[hash(key) % _LOCK_STRIPES]

    async def _bounded(self, call: Awaitable[T]) -> T:
        try:
            return await asyncio.wait_for(call, timeout=self._timeout)
        except asyncio.TimeoutError as exc:
            raise PaymentTimeoutError(self._timeout) from exc

    # ------------------------------------------------------------------
    # Server-side charge
    # ------------------------------------------------------------------

    async def process_payment(
        self,
        db: AsyncSession,
        plate: str,
        spot_id: str,
        duration_minutes: int,
        declared_cost_cents: int,
        payment_method_id: str,
    ) -> PaidSession:
        session = await self._coordinator.create_session(
            db,
            plate,
            spot_id,
            duration_minutes,
            declared_cost_cents,
            payment_method_id=payment_method_id,
        )
        payment = await self.get_payment(db, session.payment_id or "")
        return PaidSession(session=session, payment=payment)

    # ------------------------------------------------------------------
    # Client-confirmed charge
    # ------------------------------------------------------------------

    async def create_charge(
        self,
        db: AsyncSession,
        plate: str,
        spot_id: str,
        duration_minutes: int,
        declared_cost_cents: int,
    ) -> PendingCharge:
        plate = normalize_plate(plate)
        validate_duration(duration_minutes)
        validate_amount("total_cost", declared_cost_cents)
        fee = self._coordinator.fees.platform_fee_cents
        payment_id = generate_id("pay")
        metadata = {
            "payment_id": payment_id,
            "license_plate": plate,
            "spot_id": spot_id,
            "duration_minutes": str(duration_minutes),
        }
        receipt = await self._bounded(
            self._gateway.create_intent(
                declared_cost_cents + fee, metadata, idempotency_key=f"intent-{payment_id}"
            )
        )
        payment = Payment(
            id=payment_id,
            license_plate=plate,
            amount_cents=declared_cost_cents,
            fee_cents=fee,
            status=PaymentStatus.PENDING.value,
            charge_ref=receipt.charge_ref,
            spot_id=spot_id,
            duration_minutes=duration_minutes,
        )
        try:
            await self._repo.insert(db, payment)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("Pending payment %s opened for charge %s", payment.id, receipt.charge_ref)
        return PendingCharge(payment=payment, client_secret=receipt.client_secret)

    async def confirm_charge(self, db: AsyncSession, charge_ref: str) -> Payment:
        """Open the session for a charge the provider reports as succeeded.

        Idempotent: a payment that already succeeded is returned unchanged.
        A provider-side failure marks the payment failed. If the session
        cannot be opened after the customer paid, the charge is refunded and
        the payment marked failed before the error is raised.
        """
        async with self._lock_for(charge_ref):
            payment = await self._repo.get_by_charge_ref(db, charge_ref)
            if payment is None:
                raise PaymentNotFoundError(charge_ref)
            if payment.status in (PaymentStatus.SUCCEEDED, PaymentStatus.REFUNDED):
                return payment
            if payment.status == PaymentStatus.FAILED:
                raise PaymentStateConflictError(
                    payment.id, payment.status, PaymentStatus.SUCCEEDED.value
                )

            receipt = await self._bounded(self._gateway.retrieve(charge_ref))
            if receipt.failed:
                return await self._mark_failed(db, payment)
            if not receipt.succeeded:
                logger.info("Charge %s still %s", charge_ref, receipt.status)
                return payment

            try:
                await self._coordinator.create_session_for_payment(db, payment, receipt)
            except Exception:
                logger.warning(
                    "Session for paid charge %s could not be opened; refunding",
                    charge_ref, exc_info=True,
                )
                await self._refund_unused(receipt)
                await self._mark_failed(db, payment)
                raise
            return await self.get_payment(db, payment.id)

    async def fail_charge(self, db: AsyncSession, charge_ref: str) -> Payment | None:
        async with self._lock_for(charge_ref):
            payment = await self._repo.get_by_charge_ref(db, charge_ref)
            if payment is None or payment.status != PaymentStatus.PENDING:
                return payment
            return await self._mark_failed(db, payment)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def get_payment(self, db: AsyncSession, payment_id: str) -> Payment:
        payment = await self._repo.get_by_id(db, payment_id)
        if payment is None:
            raise PaymentNotFoundError(payment_id)
        return payment

    # ------------------------------------------------------------------
    # Refund
    # ------------------------------------------------------------------

    async def refund_payment(self, db: AsyncSession, payment_id: str) -> RefundOutcome:
        payment = await self.get_payment(db, payment_id)
        async with self._lock_for(payment.charge_ref or payment.id):
            payment = await self.get_payment(db, payment_id)

            if payment.status == PaymentStatus.REFUNDED:
                # Money already returned; only the session may still need closing.
                pending = not await self._cancel_session(db, payment.session_id)
                return RefundOutcome(payment=payment, session_cancel_pending=pending)

            if not can_transition(payment.status, PaymentStatus.REFUNDED.value):
                raise PaymentStateConflictError(
                    payment.id, payment.status, PaymentStatus.REFUNDED.value
                )

            if payment.charge_ref:
                await self._bounded(
                    self._gateway.refund(
                        payment.charge_ref, idempotency_key=refund_key(payment.charge_ref)
                    )
                )
            try:
                refunded = await self._repo.transition_status(
                    db,
                    payment.id,
                    PaymentStatus.SUCCEEDED.value,
                    PaymentStatus.REFUNDED.value,
                    self._clock(),
                )
                if refunded is None:
                    raise PaymentStateConflictError(
                        payment.id, payment.status, PaymentStatus.REFUNDED.value
                    )
                await db.commit()
            except Exception:
                await db.rollback()
                logger.error(
                    "Charge %s refunded at provider but payment %s not updated",
                    payment.charge_ref, payment.id,
                )
                raise
            logger.info("Payment %s refunded", payment.id)

            pending = not await self._cancel_session(db, refunded.session_id)
            return RefundOutcome(payment=refunded, session_cancel_pending=pending)

    # ------------------------------------------------------------------
    # Webhook
    # ------------------------------------------------------------------

    async def handle_webhook(
        self, db: AsyncSession, payload: bytes, signature: str | None
    ) -> str:
        """Verify and apply a provider event. Returns the action taken."""
        event = self._gateway.verify_event(payload, signature)
        if event.charge_ref is None:
            logger.info("Ignoring provider event %s without a charge", event.event_type)
            return "ignored"

        if event.event_type == ProviderEventType.CHARGE_SUCCEEDED:
            try:
                await self.confirm_charge(db, event.charge_ref)
            except PaymentNotFoundError:
                logger.info("No payment recorded for charge %s", event.charge_ref)
                return "ignored"
            except AppError as exc:
                # Already compensated (refund + failed); acknowledging stops redelivery.
                logger.warning(
                    "Webhook confirm for %s failed: [%d] %s",
                    event.charge_ref, exc.code, exc.message,
                )
                return "rejected"
            return "confirmed"

        if event.event_type == ProviderEventType.CHARGE_FAILED:
            await self.fail_charge(db, event.charge_ref)
            return "failed"

        logger.info("Ignoring provider event %s (%s)", event.event_type, event.event_id)
        return "ignored"

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _mark_failed(self, db: AsyncSession, payment: Payment) -> Payment:
        try:
            failed = await self._repo.transition_status(
                db,
                payment.id,
                PaymentStatus.PENDING.value,
                PaymentStatus.FAILED.value,
                self._clock(),
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        if failed is None:
            return await self.get_payment(db, payment.id)
        logger.info("Payment %s marked failed", payment.id)
        return failed

    async def _refund_unused(self, receipt: ChargeReceipt) -> None:
        try:
            await self._bounded(
                self._gateway.refund(
                    receipt.charge_ref, idempotency_key=refund_key(receipt.charge_ref)
                )
            )
        except AppError:
            logger.exception("Refund of unused charge %s failed", receipt.charge_ref)

    async def _cancel_session(self, db: AsyncSession, session_id: str | None) -> bool:
        """Cancel the session tied to a refunded payment. False if it is still active."""
        if session_id is None:
            return True
        try:
            await self._coordinator.cancel_session(db, session_id)
        except SessionNotActiveError:
            return True
        except Exception:
            logger.exception("Session %s still active after refund", session_id)
            return False
        return True
