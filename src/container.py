"""Service wiring.

build_container() assembles the ledger, coordinator, sweeper and payment
service around one AvailabilityNotifier. main.py stores the result on
app.state.container; routers reach it through get_container().
"""

from dataclasses import dataclass

from fastapi import Request

from config.settings import Settings
from src.ps_common.database import async_session_factory
from src.ps_payment.application.service import PaymentApplicationService
from src.ps_payment.infrastructure.persistence import PaymentRepository
from src.ps_payment.infrastructure.stripe_gateway import StripeGateway
from src.ps_realtime.notifier import AvailabilityNotifier
from src.ps_session.application.coordinator import SessionCoordinator
from src.ps_session.application.sweeper import ExpirySweeper
from src.ps_session.domain.models import FeeSchedule
from src.ps_session.infrastructure.persistence import SessionRepository
from src.ps_spot.application.ledger import AvailabilityLedger
from src.ps_spot.application.service import SpotApplicationService
from src.ps_spot.infrastructure.persistence import SpotRepository


@dataclass
class Container:
    notifier: AvailabilityNotifier
    ledger: AvailabilityLedger
    spots: SpotApplicationService
    coordinator: SessionCoordinator
    sweeper: ExpirySweeper
    payments: PaymentApplicationService
    gateway: StripeGateway | None = None


def build_container(settings: Settings) -> Container:
    notifier = AvailabilityNotifier(
        channel=settings.REALTIME_CHANNEL, queue_size=settings.REALTIME_QUEUE_SIZE
    )
    spot_repo = SpotRepository()
    session_repo = SessionRepository()
    payment_repo = PaymentRepository()
    ledger = AvailabilityLedger(spot_repo, notifier)
    gateway = StripeGateway(
        settings.STRIPE_SECRET_KEY,
        settings.STRIPE_WEBHOOK_SECRET,
        base_url=settings.STRIPE_API_BASE,
        currency=settings.PAYMENT_CURRENCY,
        timeout=settings.PAYMENT_TIMEOUT_SECONDS,
        max_network_retries=settings.STRIPE_MAX_NETWORK_RETRIES,
    )
    coordinator = SessionCoordinator(
        session_repo,
        payment_repo,
        ledger,
        gateway,
        fees=FeeSchedule(
            platform_fee_cents=settings.PLATFORM_FEE_CENTS,
            baseline_fee_cents=settings.BASELINE_FEE_CENTS,
        ),
        payment_timeout=settings.PAYMENT_TIMEOUT_SECONDS,
    )
    return Container(
        notifier=notifier,
        ledger=ledger,
        spots=SpotApplicationService(spot_repo, session_repo, ledger),
        coordinator=coordinator,
        sweeper=ExpirySweeper(
            async_session_factory,
            session_repo,
            ledger,
            batch_size=settings.SWEEP_BATCH_SIZE,
        ),
        payments=PaymentApplicationService(
            payment_repo,
            coordinator,
            gateway,
            timeout_seconds=settings.PAYMENT_TIMEOUT_SECONDS,
        ),
        gateway=gateway,
    )


def get_container(request: Request) -> Container:
    """FastAPI dependency: the Container built at startup."""
    return request.app.state.container
