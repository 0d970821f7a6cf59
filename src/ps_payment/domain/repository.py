"""PaymentRepository Protocol: interface contract for persistence layer."""

from datetime import datetime
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.ps_payment.domain.models import Payment


class PaymentRepositoryProtocol(Protocol):
    async def insert(self, db: AsyncSession, payment: Payment) -> None: ...

    async def get_by_id(self, db: AsyncSession, payment_id: str) -> Payment | None: ...

    async def get_by_charge_ref(
        self, db: AsyncSession, charge_ref: str
    ) -> Payment | None: ...

    async def transition_status(
        self,
        db: AsyncSession,
        payment_id: str,
        from_status: str,
        to_status: str,
        now: datetime,
        receipt_url: str | None = None,
        session_id: str | None = None,
    ) -> Payment | None:
        """CAS on status=from_status. receipt_url/session_id are kept when None."""
        ...
