"""PaymentRepository: raw SQL persistence implementation.

Status changes are compare-and-set UPDATEs; callers check can_transition()
first and treat a None result as a lost race.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.ps_payment.domain.models import Payment

_COLUMNS = """
    id, session_id, license_plate, amount_cents, fee_cents, status, charge_ref,
    spot_id, duration_minutes, payment_method, receipt_url, created_at, updated_at
"""

_INSERT_SQL = text("""
    INSERT INTO payments
        (id, session_id, license_plate, amount_cents, fee_cents, status, charge_ref,
         spot_id, duration_minutes, payment_method, receipt_url)
    VALUES
        (:id, :session_id, :license_plate, :amount_cents, :fee_cents, :status, :charge_ref,
         :spot_id, :duration_minutes, :payment_method, :receipt_url)
""")

_GET_BY_ID_SQL = text(f"SELECT {_COLUMNS} FROM payments WHERE id = :id")

_GET_BY_CHARGE_REF_SQL = text(f"SELECT {_COLUMNS} FROM payments WHERE charge_ref = :charge_ref")

_TRANSITION_SQL = text(f"""
    UPDATE payments
    SET status = :to_status,
        receipt_url = COALESCE(CAST(:receipt_url AS TEXT), receipt_url),
        session_id = COALESCE(CAST(:session_id AS TEXT), session_id),
        updated_at = :now
    WHERE id = :id AND status = :from_status
    RETURNING {_COLUMNS}
""")


def _row_to_payment(row: Any) -> Payment:
    return Payment(
        id=row.id,
        session_id=row.session_id,
        license_plate=row.license_plate,
        amount_cents=row.amount_cents,
        fee_cents=row.fee_cents,
        status=row.status,
        charge_ref=row.charge_ref,
        spot_id=row.spot_id,
        duration_minutes=row.duration_minutes,
        payment_method=row.payment_method,
        receipt_url=row.receipt_url,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


class PaymentRepository:
    """Concrete implementation of PaymentRepositoryProtocol using raw SQL."""

    async def insert(self, db: AsyncSession, payment: Payment) -> None:
        await db.execute(
            _INSERT_SQL,
            {
                "id": payment.id,
                "session_id": payment.session_id,
                "license_plate": payment.license_plate,
                "amount_cents": payment.amount_cents,
                "fee_cents": payment.fee_cents,
                "status": payment.status,
                "charge_ref": payment.charge_ref,
                "spot_id": payment.spot_id,
                "duration_minutes": payment.duration_minutes,
                "payment_method": payment.payment_method,
                "receipt_url": payment.receipt_url,
            },
        )

    async def get_by_id(self, db: AsyncSession, payment_id: str) -> Payment | None:
        row = (await db.execute(_GET_BY_ID_SQL, {"id": payment_id})).fetchone()
        return _row_to_payment(row) if row else None

    async def get_by_charge_ref(
        self, db: AsyncSession, charge_ref: str
    ) -> Payment | None:
        row = (
            await db.execute(_GET_BY_CHARGE_REF_SQL, {"charge_ref": charge_ref})
        ).fetchone()
        return _row_to_payment(row) if row else None

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
        row = (
            await db.execute(
                _TRANSITION_SQL,
                {
                    "id": payment_id,
                    "from_status": from_status,
                    "to_status": to_status,
                    "receipt_url": receipt_url,
                    "session_id": session_id,
                    "now": now,
                },
            )
        ).fetchone()
        return _row_to_payment(row) if row else None
