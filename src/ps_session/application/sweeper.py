"""ExpirySweeper: flips lapsed active sessions to expired and returns capacity.

Each expired session is handled in its own AsyncSession so one bad row cannot
poison the rest of the tick. The active -> expired update is a CAS: a session
cancelled between the scan and the update is left alone and its spot is not
released a second time.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from src.ps_common.datetime_utils import Clock, utc_now
from src.ps_common.enums import SessionStatus
from src.ps_session.domain.models import ParkingSession
from src.ps_session.domain.repository import SessionRepositoryProtocol
from src.ps_spot.application.ledger import AvailabilityLedger

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], AsyncSession]


@dataclass
class SweepResult:
    scanned: int = 0
    expired: int = 0
    skipped: int = 0   # lost the CAS to a concurrent cancel/expire
    failed: int = 0


class ExpirySweeper:
    def __init__(
        self,
        session_factory: SessionFactory,
        repo: SessionRepositoryProtocol,
        ledger: AvailabilityLedger,
        clock: Clock = utc_now,
        batch_size: int = 500,
    ) -> None:
        self._session_factory = session_factory
        self._repo = repo
        self._ledger = ledger
        self._clock = clock
        self._batch_size = batch_size

    async def sweep(self, now: datetime | None = None) -> SweepResult:
        now = now or self._clock()
        result = SweepResult()
        async with self._session_factory() as db:
            candidates = await self._repo.list_expired(db, now, self._batch_size)
        result.scanned = len(candidates)

        for session in candidates:
            try:
                if await self._expire_one(session, now):
                    result.expired += 1
                else:
                    result.skipped += 1
            except Exception:
                result.failed += 1
                logger.exception("Failed to expire session %s", session.id)

        if result.scanned:
            logger.info(
                "Sweep done: scanned=%d expired=%d skipped=%d failed=%d",
                result.scanned, result.expired, result.skipped, result.failed,
            )
        return result

    async def run(self) -> None:
        """Scheduler entry point; a failed tick is logged and the next one runs as usual."""
        try:
            await self.sweep()
        except Exception:
            logger.exception("Expiry sweep tick failed")

    async def _expire_one(self, session: ParkingSession, now: datetime) -> bool:
        async with self._session_factory() as db:
            try:
                expired = await self._repo.transition_status(
                    db,
                    session.id,
                    SessionStatus.ACTIVE.value,
                    SessionStatus.EXPIRED.value,
                    now,
                )
            except Exception:
                await db.rollback()
                raise
            if expired is None:
                await db.rollback()
                return False
            # Commits the status change together with the released unit.
            await self._ledger.release(db, expired.spot_id)
            return True
