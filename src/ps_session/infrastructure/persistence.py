"""SessionRepository: raw SQL persistence implementation.

The "one active session per plate" rule is backed by the partial unique index
uq_parking_sessions_active_plate; an insert that violates it surfaces as
PlateAlreadyActiveError, whatever the coordinator's pre-check saw.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.ps_common.errors import PlateAlreadyActiveError
from src.ps_session.domain.models import ParkingSession, PlateStatistics, SessionTotals

_ACTIVE_PLATE_INDEX = "uq_parking_sessions_active_plate"

# ---------------------------------------------------------------------------
# SQL statements
# ---------------------------------------------------------------------------

_COLUMNS = """
    id, license_plate, spot_id, duration_minutes, start_time, end_time,
    total_cost_cents, fee_paid_cents, fee_saved_cents, status, payment_id,
    created_at, updated_at
"""

_INSERT_SQL = text("""
    INSERT INTO parking_sessions
        (id, license_plate, spot_id, duration_minutes, start_time, end_time,
         total_cost_cents, fee_paid_cents, fee_saved_cents, status, payment_id)
    VALUES
        (:id, :license_plate, :spot_id, :duration_minutes, :start_time, :end_time,
         :total_cost_cents, :fee_paid_cents, :fee_saved_cents, :status, :payment_id)
""")

_GET_BY_ID_SQL = text(f"SELECT {_COLUMNS} FROM parking_sessions WHERE id = :id")

_FIND_ACTIVE_BY_PLATE_SQL = text(f"""
    SELECT {_COLUMNS}
    FROM parking_sessions
    WHERE license_plate = :plate AND status = 'active'
""")

_APPLY_EXTENSION_SQL = text(f"""
    UPDATE parking_sessions
    SET duration_minutes = :duration_minutes,
        end_time = :end_time,
        total_cost_cents = :total_cost_cents,
        updated_at = :now
    WHERE id = :id AND status = 'active' AND duration_minutes = :previous_duration
    RETURNING {_COLUMNS}
""")

_TRANSITION_SQL = text(f"""
    UPDATE parking_sessions
    SET status = :to_status, updated_at = :now
    WHERE id = :id AND status = :from_status
    RETURNING {_COLUMNS}
""")

_LIST_EXPIRED_SQL = text(f"""
    SELECT {_COLUMNS}
    FROM parking_sessions
    WHERE status = 'active' AND end_time < :now
    ORDER BY end_time ASC
    LIMIT :limit
""")

_LIST_BY_PLATE_SQL = text(f"""
    SELECT {_COLUMNS}
    FROM parking_sessions
    WHERE license_plate = :plate
      AND (CAST(:status AS TEXT) IS NULL OR status = :status)
    ORDER BY created_at DESC, id DESC
    OFFSET :offset
    LIMIT :limit
""")

_COUNT_BY_PLATE_SQL = text("""
    SELECT COUNT(*) AS n
    FROM parking_sessions
    WHERE license_plate = :plate
      AND (CAST(:status AS TEXT) IS NULL OR status = :status)
""")

_PLATE_STATS_SQL = text("""
    SELECT
        COUNT(*) AS total_sessions,
        COUNT(*) FILTER (WHERE status = 'active') AS active_sessions,
        COALESCE(SUM(total_cost_cents) FILTER (WHERE status IN ('active', 'expired')), 0)
            AS total_spent,
        COALESCE(SUM(fee_paid_cents) FILTER (WHERE status IN ('active', 'expired')), 0)
            AS total_fees,
        COALESCE(SUM(fee_saved_cents) FILTER (WHERE status IN ('active', 'expired')), 0)
            AS total_saved
    FROM parking_sessions
    WHERE license_plate = :plate
""")

_TOTALS_SQL = text("""
    SELECT
        COUNT(*) FILTER (WHERE status = 'active') AS active_sessions,
        COALESCE(SUM(total_cost_cents) FILTER (WHERE status IN ('active', 'expired')), 0)
            AS revenue,
        COALESCE(SUM(fee_saved_cents) FILTER (WHERE status IN ('active', 'expired')), 0)
            AS fees_saved
    FROM parking_sessions
""")


# ---------------------------------------------------------------------------
# Row mapper
# ---------------------------------------------------------------------------


def _row_to_session(row: Any) -> ParkingSession:
    return ParkingSession(
        id=row.id,
        license_plate=row.license_plate,
        spot_id=row.spot_id,
        duration_minutes=row.duration_minutes,
        start_time=row.start_time,
        end_time=row.end_time,
        total_cost_cents=row.total_cost_cents,
        fee_paid_cents=row.fee_paid_cents,
        fee_saved_cents=row.fee_saved_cents,
        status=row.status,
        payment_id=row.payment_id,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class SessionRepository:
    """Concrete implementation of SessionRepositoryProtocol using raw SQL."""

    async def insert(self, db: AsyncSession, session: ParkingSession) -> None:
        try:
            await db.execute(
                _INSERT_SQL,
                {
                    "id": session.id,
                    "license_plate": session.license_plate,
                    "spot_id": session.spot_id,
                    "duration_minutes": session.duration_minutes,
                    "start_time": session.start_time,
                    "end_time": session.end_time,
                    "total_cost_cents": session.total_cost_cents,
                    "fee_paid_cents": session.fee_paid_cents,
                    "fee_saved_cents": session.fee_saved_cents,
                    "status": session.status,
                    "payment_id": session.payment_id,
                },
            )
        except IntegrityError as exc:
            if _ACTIVE_PLATE_INDEX in str(exc.orig):
                raise PlateAlreadyActiveError(session.license_plate) from exc
            raise

    async def get_by_id(self, db: AsyncSession, session_id: str) -> ParkingSession | None:
        row = (await db.execute(_GET_BY_ID_SQL, {"id": session_id})).fetchone()
        return _row_to_session(row) if row else None

    async def find_active_by_plate(
        self, db: AsyncSession, plate: str
    ) -> ParkingSession | None:
        row = (await db.execute(_FIND_ACTIVE_BY_PLATE_SQL, {"plate": plate})).fetchone()
        return _row_to_session(row) if row else None

    async def apply_extension(
        self,
        db: AsyncSession,
        session_id: str,
        previous_duration: int,
        duration_minutes: int,
        end_time: datetime,
        total_cost_cents: int,
        now: datetime,
    ) -> ParkingSession | None:
        row = (
            await db.execute(
                _APPLY_EXTENSION_SQL,
                {
                    "id": session_id,
                    "previous_duration": previous_duration,
                    "duration_minutes": duration_minutes,
                    "end_time": end_time,
                    "total_cost_cents": total_cost_cents,
                    "now": now,
                },
            )
        ).fetchone()
        return _row_to_session(row) if row else None

    async def transition_status(
        self,
        db: AsyncSession,
        session_id: str,
        from_status: str,
        to_status: str,
        now: datetime,
    ) -> ParkingSession | None:
        row = (
            await db.execute(
                _TRANSITION_SQL,
                {
                    "id": session_id,
                    "from_status": from_status,
                    "to_status": to_status,
                    "now": now,
                },
            )
        ).fetchone()
        return _row_to_session(row) if row else None

    async def list_expired(
        self, db: AsyncSession, now: datetime, limit: int
    ) -> list[ParkingSession]:
        result = await db.execute(_LIST_EXPIRED_SQL, {"now": now, "limit": limit})
        return [_row_to_session(row) for row in result.fetchall()]

    async def list_by_plate(
        self,
        db: AsyncSession,
        plate: str,
        status: str | None,
        offset: int,
        limit: int,
    ) -> list[ParkingSession]:
        result = await db.execute(
            _LIST_BY_PLATE_SQL,
            {"plate": plate, "status": status, "offset": offset, "limit": limit},
        )
        return [_row_to_session(row) for row in result.fetchall()]

    async def count_by_plate(
        self, db: AsyncSession, plate: str, status: str | None
    ) -> int:
        row = (
            await db.execute(_COUNT_BY_PLATE_SQL, {"plate": plate, "status": status})
        ).fetchone()
        return int(row.n) if row else 0

    async def plate_statistics(self, db: AsyncSession, plate: str) -> PlateStatistics:
        row = (await db.execute(_PLATE_STATS_SQL, {"plate": plate})).fetchone()
        if row is None:
            return PlateStatistics()
        return PlateStatistics(
            total_sessions=int(row.total_sessions),
            active_sessions=int(row.active_sessions),
            total_spent_cents=int(row.total_spent),
            total_fees_cents=int(row.total_fees),
            total_saved_cents=int(row.total_saved),
        )

    async def totals(self, db: AsyncSession) -> SessionTotals:
        row = (await db.execute(_TOTALS_SQL)).fetchone()
        if row is None:
            return SessionTotals()
        return SessionTotals(
            active_sessions=int(row.active_sessions),
            revenue_cents=int(row.revenue),
            fees_saved_cents=int(row.fees_saved),
        )
