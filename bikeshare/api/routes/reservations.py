"""
Reservation endpoints
=====================

POST /api/v1/reservations                   -- reserve (and by default unlock) a bike
GET  /api/v1/reservations/active            -- caller's live reservation or null
GET  /api/v1/reservations/history           -- caller's ended / cancelled rides, newest first
GET  /api/v1/reservations/{id}              -- one reservation
POST /api/v1/reservations/{id}/unlock       -- start a RESERVED ride
POST /api/v1/reservations/{id}/end          -- return the bike and settle
POST /api/v1/reservations/{id}/cancel       -- cancel a RESERVED reservation
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Request

from bikeshare.api.dependencies import Rider, get_machine, get_rider
from bikeshare.api.middleware import limiter
from bikeshare.api.schemas import (
    EndReservationRequest,
    ReservationCreateRequest,
    ReservationResponse,
)
from bikeshare.config import settings
from bikeshare.domain.entities import Reservation
from bikeshare.domain.errors import ReservationNotFound
from bikeshare.domain.reservations import ReservationStateMachine

router = APIRouter(prefix="/reservations", tags=["reservations"])


def to_response(
    reservation: Reservation, machine: ReservationStateMachine
) -> ReservationResponse:
    response = ReservationResponse.model_validate(reservation)
    remaining = machine.remaining(reservation.id)
    response.remaining_seconds = remaining.total_seconds() if remaining is not None else None
    return response


async def _owned(
    machine: ReservationStateMachine, reservation_id: str, rider: Rider
) -> Reservation:
    reservation = await machine.get(reservation_id)
    if reservation.user_id != rider.user_id:
        raise ReservationNotFound(f"Reservation not found: {reservation_id}")
    return reservation


@router.post(
    "",
    status_code=201,
    response_model=ReservationResponse,
    summary="Reserve a bike",
    responses={409: {"description": "Bike taken or unavailable; choose another bike."}},
)
@limiter.limit(settings.rate_limit)
async def create_reservation(
    request: Request,
    body: ReservationCreateRequest,
    rider: Rider = Depends(get_rider),
    machine: ReservationStateMachine = Depends(get_machine),
):
    reservation = await machine.create(
        rider.user_id,
        body.station_id,
        body.duration_minutes,
        is_premium_user=rider.is_premium,
        bike_id=body.bike_id,
        bike_type=body.bike_type,
    )
    if body.unlock:
        reservation = await machine.unlock(reservation.id)
    return to_response(reservation, machine)


@router.get(
    "/active",
    response_model=Optional[ReservationResponse],
    summary="Get the caller's live reservation",
)
@limiter.limit(settings.rate_limit)
async def get_active_reservation(
    request: Request,
    rider: Rider = Depends(get_rider),
    machine: ReservationStateMachine = Depends(get_machine),
):
    reservation = machine.active_for_user(rider.user_id)
    return to_response(reservation, machine) if reservation else None


@router.get(
    "/history",
    response_model=list[ReservationResponse],
    summary="List the caller's past rides, newest first",
)
@limiter.limit(settings.rate_limit)
async def get_history(
    request: Request,
    rider: Rider = Depends(get_rider),
    machine: ReservationStateMachine = Depends(get_machine),
):
    rides = await machine.history_for_user(rider.user_id)
    return [to_response(r, machine) for r in rides]


@router.get(
    "/{reservation_id}",
    response_model=ReservationResponse,
    summary="Get one reservation",
)
@limiter.limit(settings.rate_limit)
async def get_reservation(
    request: Request,
    reservation_id: str,
    rider: Rider = Depends(get_rider),
    machine: ReservationStateMachine = Depends(get_machine),
):
    return to_response(await _owned(machine, reservation_id, rider), machine)


@router.post(
    "/{reservation_id}/unlock",
    response_model=ReservationResponse,
    summary="Unlock a reserved bike",
)
@limiter.limit(settings.rate_limit)
async def unlock_reservation(
    request: Request,
    reservation_id: str,
    rider: Rider = Depends(get_rider),
    machine: ReservationStateMachine = Depends(get_machine),
):
    await _owned(machine, reservation_id, rider)
    return to_response(await machine.unlock(reservation_id), machine)


@router.post(
    "/{reservation_id}/end",
    response_model=ReservationResponse,
    summary="Return the bike and settle the ride",
    description=(
        "Valid for ACTIVE and EXPIRED reservations.  The final cost is "
        "recomputed from the actual ride time."
    ),
)
@limiter.limit(settings.rate_limit)
async def end_reservation(
    request: Request,
    reservation_id: str,
    body: EndReservationRequest,
    rider: Rider = Depends(get_rider),
    machine: ReservationStateMachine = Depends(get_machine),
):
    await _owned(machine, reservation_id, rider)
    reservation = await machine.end(reservation_id, body.return_station_id)
    return to_response(reservation, machine)


@router.post(
    "/{reservation_id}/cancel",
    response_model=ReservationResponse,
    summary="Cancel a reservation that has not been unlocked",
)
@limiter.limit(settings.rate_limit)
async def cancel_reservation(
    request: Request,
    reservation_id: str,
    rider: Rider = Depends(get_rider),
    machine: ReservationStateMachine = Depends(get_machine),
):
    await _owned(machine, reservation_id, rider)
    return to_response(await machine.cancel(reservation_id), machine)
