"""Shared test fixtures.

ASGITransport does not run the lifespan, so API tests get a Container built
over the in-memory fakes instead of the one main.py wires at startup.
"""

import os

os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("SEED_ON_STARTUP", "false")

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402

from src.container import Container  # noqa: E402
from src.main import app  # noqa: E402
from src.ps_common.database import get_db_session  # noqa: E402
from src.ps_realtime.notifier import AvailabilityNotifier  # noqa: E402
from tests.fakes import World, make_spot  # noqa: E402


@pytest.fixture
def world() -> World:
    return World(
        make_spot("spot_mission", total=3, zone="Mission", name="Mission & 16th St"),
        make_spot(
            "spot_soma", total=2, zone="SoMa", name="SoMa",
            lat=37.7869, lng=-122.3980, rate_cents=325,
        ),
    )


@pytest.fixture
async def client(world: World) -> AsyncClient:
    """Async HTTP client for testing FastAPI endpoints against the fakes."""
    app.state.container = Container(
        notifier=AvailabilityNotifier(),
        ledger=world.ledger,
        spots=world.spots,
        coordinator=world.coordinator,
        sweeper=world.sweeper,
        payments=world.payments,
    )

    async def _db():
        yield world.db

    app.dependency_overrides[get_db_session] = _db
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
