"""ps_session REST API: lookup, extend, cancel, history and per-plate stats."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.container import Container, get_container
from src.ps_common.database import get_db_session
from src.ps_common.enums import SessionStatus
from src.ps_common.response import ApiResponse, success_for
from src.ps_session.application.schemas import (
    ActiveSessionResponse,
    ExtendSessionRequest,
    PlateStatisticsResponse,
    SessionHistoryResponse,
    SessionResponse,
)
from src.ps_session.domain.models import normalize_plate

router = APIRouter(prefix="/sessions", tags=["sessions"])


@router.get("/active/{license_plate}")
async def get_active_session(
    license_plate: str,
    container: Annotated[Container, Depends(get_container)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    view = await container.coordinator.lookup_active(db, license_plate)
    if view is None:
        return success_for(request, None, "No active parking session found")
    return success_for(request, ActiveSessionResponse.from_view(view).model_dump())


@router.get("/plate/{license_plate}")
async def session_history(
    license_plate: str,
    container: Annotated[Container, Depends(get_container)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    status: SessionStatus | None = Query(None, description="Filter by status"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
) -> ApiResponse:
    history = await container.coordinator.list_history(
        db, license_plate, status.value if status else None, page, limit
    )
    return success_for(request, SessionHistoryResponse.from_history(history).model_dump())


@router.get("/plate/{license_plate}/statistics")
async def plate_statistics(
    license_plate: str,
    container: Annotated[Container, Depends(get_container)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    stats = await container.coordinator.plate_statistics(db, license_plate)
    data = PlateStatisticsResponse.build(normalize_plate(license_plate), stats)
    return success_for(request, data.model_dump())


@router.get("/{session_id}")
async def get_session(
    session_id: str,
    container: Annotated[Container, Depends(get_container)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    session = await container.coordinator.get_session(db, session_id)
    return success_for(request, SessionResponse.from_domain(session).model_dump())


@router.post("/{session_id}/extend")
async def extend_session(
    session_id: str,
    body: ExtendSessionRequest,
    container: Annotated[Container, Depends(get_container)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    session = await container.coordinator.extend_session(
        db, session_id, body.additional_minutes, body.additional_cost_cents
    )
    return success_for(
        request, SessionResponse.from_domain(session).model_dump(), "Session extended"
    )


@router.post("/{session_id}/cancel")
async def cancel_session(
    session_id: str,
    container: Annotated[Container, Depends(get_container)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    session = await container.coordinator.cancel_session(db, session_id)
    return success_for(
        request, SessionResponse.from_domain(session).model_dump(), "Session cancelled"
    )
