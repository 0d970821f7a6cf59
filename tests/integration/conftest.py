"""Integration-test fixtures.

All integration tests share a single event-loop so that the module-level
SQLAlchemy async engine pool remains valid across the entire test session.
ASGITransport does not run the lifespan, so the fixture wires the real
container and seeds the demo spots itself.

Requires PostgreSQL with migrations applied (alembic upgrade head).
"""

import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from config.settings import settings
from src.container import build_container
from src.main import app
from src.ps_common.database import async_session_factory
from src.ps_spot.infrastructure.persistence import SpotRepository
from src.ps_spot.infrastructure.seed import seed_spots


@pytest_asyncio.fixture(loop_scope="session", scope="session")
async def client() -> AsyncClient:  # type: ignore[override]
    """Session-scoped async HTTP client over the real container."""
    app.dependency_overrides.clear()
    container = build_container(settings)
    app.state.container = container
    async with async_session_factory() as db:
        await seed_spots(db, SpotRepository())

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    if container.gateway is not None:
        await container.gateway.aclose()
