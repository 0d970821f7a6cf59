"""SessionCoordinator: session lifecycle on top of the AvailabilityLedger.

create_session order: validate -> plate pre-check -> Ledger.reserve ->
optional charge -> persist. The reserve commits on its own, so every failure
after it runs the compensation: rollback, Ledger.release, refund of any charge
that went through. The partial unique index on active plates is the final
authority for the one-active-session-per-plate rule; the pre-check only saves
a reservation round trip in the common case.
"""

import asyncio
import logging
import math
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from src.ps_common.cents import validate_amount
from src.ps_common.datetime_utils import Clock, utc_now
from src.ps_common.enums import PaymentStatus, SessionStatus
from src.ps_common.errors import (
    InvalidDurationError,
    InvalidPlateError,
    PaymentStateConflictError,
    PaymentTimeoutError,
    PlateAlreadyActiveError,
    SessionNotActiveError,
    SessionNotFoundError,
)
from src.ps_common.id_generator import generate_id
from src.ps_payment.domain.gateway import (
    ChargeReceipt,
    PaymentGatewayProtocol,
    refund_key,
)
from src.ps_payment.domain.models import Payment
from src.ps_payment.domain.repository import PaymentRepositoryProtocol
from src.ps_session.domain.models import (
    MAX_DURATION_MINUTES,
    FeeSchedule,
    ParkingSession,
    PlateStatistics,
    SessionView,
    compute_end_time,
    normalize_plate,
    validate_duration,
)
from src.ps_session.domain.repository import SessionRepositoryProtocol
from src.ps_spot.application.ledger import AvailabilityLedger

logger = logging.getLogger(__name__)

_EXTEND_ATTEMPTS = 3


class SessionHistory:
    """One page of a plate's sessions, newest first."""

    def __init__(
        self, items: list[ParkingSession], total: int, page: int, limit: int
    ) -> None:
        self.items = items
        self.total = total
        self.page = page
        self.limit = limit

    @property
    def pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0


class SessionCoordinator:
    def __init__(
        self,
        sessions: SessionRepositoryProtocol,
        payments: PaymentRepositoryProtocol,
        ledger: AvailabilityLedger,
        gateway: PaymentGatewayProtocol | None = None,
        fees: FeeSchedule | None = None,
        payment_timeout: float = 15.0,
        clock: Clock = utc_now,
    ) -> None:
        self._sessions = sessions
        self._payments = payments
        self._ledger = ledger
        self._gateway = gateway
        self._fees = fees or FeeSchedule()
        self._payment_timeout = payment_timeout
        self._clock = clock

    @property
    def fees(self) -> FeeSchedule:
        return self._fees

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    async def create_session(
        self,
        db: AsyncSession,
        plate: str,
        spot_id: str,
        duration_minutes: int,
        declared_cost_cents: int,
        payment_method_id: str | None = None,
    ) -> ParkingSession:
        """Reserve a unit on spot_id for plate; charge first when a payment method is given."""
        plate = normalize_plate(plate)
        validate_duration(duration_minutes)
        validate_amount("total_cost", declared_cost_cents)
        await self._reject_active_plate(db, plate)

        await self._ledger.reserve(db, spot_id)
        session = self._new_session(plate, spot_id, duration_minutes, declared_cost_cents)
        receipt: ChargeReceipt | None = None
        try:
            if payment_method_id is not None:
                receipt = await self._authorize(session, payment_method_id)
                payment = Payment(
                    id=generate_id("pay"),
                    session_id=session.id,
                    license_plate=plate,
                    amount_cents=declared_cost_cents,
                    fee_cents=session.fee_paid_cents,
                    status=PaymentStatus.SUCCEEDED.value,
                    charge_ref=receipt.charge_ref,
                    spot_id=spot_id,
                    duration_minutes=duration_minutes,
                    payment_method=payment_method_id,
                    receipt_url=receipt.receipt_url,
                )
                session.payment_id = payment.id
                await self._sessions.insert(db, session)
                await self._payments.insert(db, payment)
            else:
                await self._sessions.insert(db, session)
            await db.commit()
        except Exception as exc:
            if receipt is None and isinstance(exc, PaymentTimeoutError):
                receipt = await self._find_timed_out_charge(session.id)
            await self._compensate(db, spot_id, receipt)
            raise

        logger.info(
            "Session %s created: plate=%s spot=%s duration=%dm paid=%s",
            session.id, plate, spot_id, duration_minutes, receipt is not None,
        )
        return session

    async def create_session_for_payment(
        self, db: AsyncSession, payment: Payment, receipt: ChargeReceipt
    ) -> ParkingSession:
        """Open the session a confirmed pending payment was created for.

        The payment moves pending -> succeeded in the same transaction as the
        session insert. Refunding the charge on failure is the caller's job,
        since the charge was not made here.
        """
        plate = normalize_plate(payment.license_plate)
        duration = payment.duration_minutes or 0
        validate_duration(duration)
        spot_id = payment.spot_id or ""
        await self._reject_active_plate(db, plate)

        await self._ledger.reserve(db, spot_id)
        session = self._new_session(plate, spot_id, duration, payment.amount_cents)
        session.payment_id = payment.id
        try:
            await self._sessions.insert(db, session)
            updated = await self._payments.transition_status(
                db,
                payment.id,
                PaymentStatus.PENDING.value,
                PaymentStatus.SUCCEEDED.value,
                self._clock(),
                receipt_url=receipt.receipt_url,
                session_id=session.id,
            )
            if updated is None:
                current = await self._payments.get_by_id(db, payment.id)
                raise PaymentStateConflictError(
                    payment.id,
                    current.status if current else "missing",
                    PaymentStatus.SUCCEEDED.value,
                )
            await db.commit()
        except Exception:
            await self._compensate(db, spot_id, None)
            raise

        logger.info(
            "Session %s created for payment %s: plate=%s spot=%s",
            session.id, payment.id, plate, spot_id,
        )
        return session

    # ------------------------------------------------------------------
    # Extend / cancel
    # ------------------------------------------------------------------

    async def extend_session(
        self,
        db: AsyncSession,
        session_id: str,
        additional_minutes: int,
        additional_cost_cents: int,
    ) -> ParkingSession:
        session = await self._require_active(db, session_id)
        validate_duration(additional_minutes)
        validate_amount("additional_cost", additional_cost_cents)

        try:
            for _ in range(_EXTEND_ATTEMPTS):
                duration = session.duration_minutes + additional_minutes
                if duration > MAX_DURATION_MINUTES:
                    raise InvalidDurationError(duration)
                updated = await self._sessions.apply_extension(
                    db,
                    session_id,
                    session.duration_minutes,
                    duration,
                    compute_end_time(session.start_time, duration),
                    session.total_cost_cents + additional_cost_cents,
                    self._clock(),
                )
                if updated is not None:
                    await db.commit()
                    logger.info(
                        "Session %s extended by %dm to %dm",
                        session_id, additional_minutes, duration,
                    )
                    return updated
                # Lost a race: re-read and retry against the fresh row.
                session = await self._require_active(db, session_id)
            raise SessionNotActiveError(session_id, session.status)
        except Exception:
            await db.rollback()
            raise

    async def cancel_session(self, db: AsyncSession, session_id: str) -> ParkingSession:
        """active -> cancelled, committed together with the capacity release."""
        session = await self._require_active(db, session_id)
        try:
            cancelled = await self._sessions.transition_status(
                db,
                session_id,
                SessionStatus.ACTIVE.value,
                SessionStatus.CANCELLED.value,
                self._clock(),
            )
            if cancelled is None:
                current = await self._sessions.get_by_id(db, session_id)
                raise SessionNotActiveError(
                    session_id, current.status if current else session.status
                )
        except Exception:
            await db.rollback()
            raise
        # release() commits the pending status change along with the counter.
        await self._ledger.release(db, cancelled.spot_id)
        logger.info("Session %s cancelled, spot %s released", session_id, cancelled.spot_id)
        return cancelled

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def lookup_active(
        self, db: AsyncSession, plate: str, now: datetime | None = None
    ) -> SessionView | None:
        """Active session for plate whose window contains now, else None."""
        try:
            plate = normalize_plate(plate)
        except InvalidPlateError:
            return None
        session = await self._sessions.find_active_by_plate(db, plate)
        now = now or self._clock()
        if session is None or not session.covers(now):
            return None
        return SessionView.at(session, now)

    async def get_session(self, db: AsyncSession, session_id: str) -> ParkingSession:
        session = await self._sessions.get_by_id(db, session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    async def list_history(
        self,
        db: AsyncSession,
        plate: str,
        status: str | None = None,
        page: int = 1,
        limit: int = 10,
    ) -> SessionHistory:
        plate = normalize_plate(plate)
        offset = (page - 1) * limit
        items = await self._sessions.list_by_plate(db, plate, status, offset, limit)
        total = await self._sessions.count_by_plate(db, plate, status)
        return SessionHistory(items=items, total=total, page=page, limit=limit)

    async def plate_statistics(self, db: AsyncSession, plate: str) -> PlateStatistics:
        return await self._sessions.plate_statistics(db, normalize_plate(plate))

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _new_session(
        self, plate: str, spot_id: str, duration_minutes: int, cost_cents: int
    ) -> ParkingSession:
        start = self._clock()
        return ParkingSession(
            id=generate_id("ses"),
            license_plate=plate,
            spot_id=spot_id,
            duration_minutes=duration_minutes,
            start_time=start,
            end_time=compute_end_time(start, duration_minutes),
            total_cost_cents=cost_cents,
            fee_paid_cents=self._fees.platform_fee_cents,
            fee_saved_cents=self._fees.fee_saved_cents,
            status=SessionStatus.ACTIVE.value,
            created_at=start,
            updated_at=start,
        )

    async def _reject_active_plate(self, db: AsyncSession, plate: str) -> None:
        if await self._sessions.find_active_by_plate(db, plate) is not None:
            raise PlateAlreadyActiveError(plate)

    async def _require_active(self, db: AsyncSession, session_id: str) -> ParkingSession:
        session = await self.get_session(db, session_id)
        if not session.is_active:
            raise SessionNotActiveError(session_id, session.status)
        return session

    async def _authorize(
        self, session: ParkingSession, payment_method_id: str
    ) -> ChargeReceipt:
        if self._gateway is None:
            raise RuntimeError("No payment gateway configured")
        amount = session.total_cost_cents + session.fee_paid_cents
        metadata = {
            "session_id": session.id,
            "license_plate": session.license_plate,
            "spot_id": session.spot_id,
            "duration_minutes": str(session.duration_minutes),
        }
        try:
            return await asyncio.wait_for(
                self._gateway.authorize(
                    amount, metadata, payment_method_id,
                    idempotency_key=f"charge-{session.id}",
                ),
                timeout=self._payment_timeout,
            )
        except asyncio.TimeoutError as exc:
            logger.warning(
                "Charge for session %s timed out after %ss", session.id, self._payment_timeout
            )
            raise PaymentTimeoutError(self._payment_timeout) from exc

    async def _compensate(
        self, db: AsyncSession, spot_id: str, receipt: ChargeReceipt | None
    ) -> None:
        """Undo a committed reservation (and charge) after a later step failed."""
        await db.rollback()
        try:
            await self._ledger.release(db, spot_id)
        except Exception:
            logger.exception("Compensating release failed for spot %s", spot_id)
        if receipt is not None and self._gateway is not None:
            try:
                await self._gateway.refund(
                    receipt.charge_ref, idempotency_key=refund_key(receipt.charge_ref)
                )
            except Exception:
                logger.exception(
                    "Compensating refund failed for charge %s", receipt.charge_ref
                )

    async def _find_timed_out_charge(self, session_id: str) -> ChargeReceipt | None:
        """A charge the provider completed after we stopped waiting, if any."""
        if self._gateway is None:
            return None
        try:
            receipt = await asyncio.wait_for(
                self._gateway.find_charge(session_id), timeout=self._payment_timeout
            )
        except Exception:
            logger.exception("Lookup of timed-out charge for session %s failed", session_id)
            return None
        if receipt is None:
            logger.warning("No charge found for timed-out session %s", session_id)
            return None
        if not receipt.succeeded:
            logger.warning(
                "Timed-out charge %s for session %s is %s; not refunding",
                receipt.charge_ref, session_id, receipt.status,
            )
            return None
        logger.warning(
            "Charge %s for session %s went through after the timeout",
            receipt.charge_ref, session_id,
        )
        return receipt
