"""
Station endpoints
=================

GET /api/v1/stations                    -- all stations, or those near ?lat&lng&radius
GET /api/v1/stations/{station_id}       -- one station

Counts always come from the in-process inventory snapshot; the database is
only asked which stations are near a point.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from bikeshare.api.dependencies import get_db, get_machine
from bikeshare.api.middleware import limiter
from bikeshare.api.schemas import StationResponse
from bikeshare.config import settings
from bikeshare.domain.distance import distance_to
from bikeshare.domain.entities import Location, Station
from bikeshare.domain.errors import InvalidRequest
from bikeshare.domain.reservations import ReservationStateMachine
from bikeshare.infrastructure.repositories import StationRepository

router = APIRouter(prefix="/stations", tags=["stations"])


def station_response(
    station: Station, origin: Optional[Location] = None
) -> StationResponse:
    loc = station.location
    return StationResponse(
        id=station.id,
        name=station.name,
        address=station.address,
        capacity=station.capacity,
        available_standard_bikes=station.available_standard_bikes,
        available_electric_bikes=station.available_electric_bikes,
        available_docks=station.available_docks,
        latitude=loc.latitude if loc else None,
        longitude=loc.longitude if loc else None,
        distance_km=distance_to(origin, loc) if origin and loc else None,
    )


@router.get(
    "",
    response_model=list[StationResponse],
    summary="List stations, optionally within a radius of a point",
)
@limiter.limit(settings.rate_limit)
async def list_stations(
    request: Request,
    lat: Optional[float] = Query(None, ge=-90, le=90),
    lng: Optional[float] = Query(None, ge=-180, le=180),
    radius: float = Query(2.0, gt=0, le=50, description="Search radius in km."),
    machine: ReservationStateMachine = Depends(get_machine),
    db: AsyncSession = Depends(get_db),
):
    inventory = machine.inventory
    if lat is None and lng is None:
        return [station_response(s) for s in inventory.list_stations()]
    if lat is None or lng is None:
        raise InvalidRequest("lat and lng must be given together")

    origin = Location(lat, lng)
    ids = await StationRepository(db).find_nearby_ids(lat, lng, radius)
    return [
        station_response(inventory.get_station(station_id), origin)
        for station_id in ids
        if inventory.has_station(station_id)
    ]


@router.get(
    "/{station_id}",
    response_model=StationResponse,
    summary="Get one station's live bike and dock counts",
)
@limiter.limit(settings.rate_limit)
async def get_station(
    request: Request,
    station_id: str,
    machine: ReservationStateMachine = Depends(get_machine),
):
    return station_response(machine.inventory.get_station(station_id))
