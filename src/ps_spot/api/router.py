"""ps_spot REST API: spot discovery, availability override, statistics, booking."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.container import Container, get_container
from src.ps_common.database import get_db_session
from src.ps_common.response import ApiResponse, success_for
from src.ps_session.application.schemas import CreateSessionRequest, SessionResponse
from src.ps_spot.application.schemas import UpdateAvailabilityRequest

router = APIRouter(prefix="/parking", tags=["parking"])


@router.get("/spots")
async def list_spots(
    container: Annotated[Container, Depends(get_container)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    zone: str | None = Query(None, description="Exact zone label"),
    lat: float | None = Query(None, ge=-90, le=90),
    lng: float | None = Query(None, ge=-180, le=180),
    radius: float | None = Query(None, gt=0, description="Box half-width in degrees"),
) -> ApiResponse:
    data = await container.spots.list_spots(db, zone, lat, lng, radius)
    return success_for(request, data.model_dump())


@router.get("/spots/{spot_id}")
async def get_spot(
    spot_id: str,
    container: Annotated[Container, Depends(get_container)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await container.spots.get_spot(db, spot_id)
    return success_for(request, data.model_dump())


@router.put("/spots/{spot_id}/availability")
async def update_availability(
    spot_id: str,
    body: UpdateAvailabilityRequest,
    container: Annotated[Container, Depends(get_container)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await container.spots.update_availability(db, spot_id, body.available_spots)
    return success_for(request, data.model_dump(), "Availability updated")


@router.get("/statistics")
async def statistics(
    container: Annotated[Container, Depends(get_container)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await container.spots.statistics(db)
    return success_for(request, data.model_dump())


@router.post("/sessions", status_code=201)
async def create_session(
    body: CreateSessionRequest,
    container: Annotated[Container, Depends(get_container)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    session = await container.coordinator.create_session(
        db,
        body.license_plate,
        body.spot_id,
        body.duration_minutes,
        body.declared_cost_cents,
    )
    data = SessionResponse.from_domain(session)
    return success_for(request, data.model_dump(), "Parking session created")
