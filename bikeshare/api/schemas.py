"""Pydantic request / response schemas for the REST API.

Field names are snake_case in Python and camelCase on the wire.  Money is
rounded to cents only here, at serialisation time.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer
from pydantic.alias_generators import to_camel

from bikeshare.domain.enums import BikeType, ReservationStatus


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, from_attributes=True
    )


# ── Requests ──────────────────────────────────────────────────────────


class ReservationCreateRequest(CamelModel):
    station_id: str = Field(..., min_length=1, max_length=64)
    duration_minutes: int = Field(..., gt=0, description="Reserved window in minutes.")
    bike_id: Optional[str] = Field(
        None, max_length=64, description="Specific bike; omit to take any bike of bikeType."
    )
    bike_type: Optional[BikeType] = None
    unlock: bool = Field(True, description="Unlock immediately after reserving.")


class EndReservationRequest(CamelModel):
    return_station_id: str = Field(..., min_length=1, max_length=64)


# ── Responses ─────────────────────────────────────────────────────────


class CostBreakdownResponse(CamelModel):
    base_rate: float
    minutes_cost: float
    discount: float
    total_cost: float

    @field_serializer("base_rate", "minutes_cost", "discount", "total_cost")
    def _cents(self, value: float) -> float:
        return round(value, 2)


class ReservationResponse(CamelModel):
    id: str
    user_id: str
    bike_id: str
    bike_type: BikeType
    plan_name: str
    start_station_id: str
    end_station_id: Optional[str] = None
    reservation_time: datetime
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    duration_minutes: int
    actual_minutes: Optional[float] = None
    status: ReservationStatus
    overdue: bool = False
    estimate: CostBreakdownResponse
    cost_breakdown: Optional[CostBreakdownResponse] = None
    remaining_seconds: Optional[float] = None


class StationResponse(CamelModel):
    id: str
    name: str
    address: str = ""
    capacity: int
    available_standard_bikes: int
    available_electric_bikes: int
    available_docks: int
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    distance_km: Optional[float] = None


class PlanResponse(CamelModel):
    key: str
    name: str
    base_rate: float
    per_minute_rate: float
    free_minutes: int
    max_free_rides_per_day: int
    explanation: str


class EstimateResponse(CamelModel):
    plan: str
    duration_minutes: float
    breakdown: CostBreakdownResponse
    formatted_total: str


class HealthResponse(BaseModel):
    status: str = "ok"


class ErrorResponse(BaseModel):
    detail: str
