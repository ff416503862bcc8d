"""
Admin / observability endpoints
===============================

GET /api/v1/admin/reservations -- every live (RESERVED/ACTIVE/EXPIRED) reservation
GET /api/v1/admin/health       -- simple health check
"""

from fastapi import APIRouter, Depends, Request

from bikeshare.api.dependencies import get_machine
from bikeshare.api.middleware import limiter
from bikeshare.api.routes.reservations import to_response
from bikeshare.api.schemas import HealthResponse, ReservationResponse
from bikeshare.config import settings
from bikeshare.domain.reservations import ReservationStateMachine

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get(
    "/reservations",
    response_model=list[ReservationResponse],
    summary="List all live reservations",
)
@limiter.limit(settings.rate_limit)
async def get_live_reservations(
    request: Request,
    machine: ReservationStateMachine = Depends(get_machine),
):
    return [to_response(r, machine) for r in machine.live_reservations()]


@router.get("/health", response_model=HealthResponse, summary="Health check")
async def health():
    return HealthResponse()
