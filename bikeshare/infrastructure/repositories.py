"""
Repository Pattern -- abstracts DB access so domain logic stays DB-agnostic.

Each repository receives an ``AsyncSession`` (unit-of-work) and exposes
domain-relevant queries only.
"""

from __future__ import annotations

from typing import Optional

from geoalchemy2 import Geography
from geoalchemy2.functions import ST_Distance, ST_DWithin, ST_MakePoint, ST_SetSRID
from sqlalchemy import cast, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from .models import BikeModel, ReservationModel, StationModel
from bikeshare.domain.entities import Bike, Location, Reservation, Station
from bikeshare.domain.inventory import StationInventory
from bikeshare.domain.pricing import CostBreakdown


class StationRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_all(self) -> list[StationModel]:
        result = await self.session.execute(
            select(StationModel).where(StationModel.is_operational.is_(True))
        )
        return list(result.scalars().all())

    async def get_docked_bikes(self) -> list[BikeModel]:
        result = await self.session.execute(
            select(BikeModel).where(BikeModel.current_station_id.is_not(None))
        )
        return list(result.scalars().all())

    async def find_nearby_ids(
        self, lat: float, lng: float, radius_km: float
    ) -> list[str]:
        """Station ids within *radius_km* of the point, nearest first."""
        origin = cast(ST_SetSRID(ST_MakePoint(lng, lat), 4326), Geography)
        location = cast(StationModel.location, Geography)
        result = await self.session.execute(
            select(StationModel.id)
            .where(StationModel.is_operational.is_(True))
            .where(ST_DWithin(location, origin, radius_km * 1000))
            .order_by(ST_Distance(location, origin))
        )
        return list(result.scalars().all())

    async def load_inventory(self) -> StationInventory:
        """Build the in-process inventory from stations and docked bikes."""
        bikes_by_station: dict[str, list[Bike]] = {}
        for b in await self.get_docked_bikes():
            bikes_by_station.setdefault(b.current_station_id, []).append(
                Bike(id=b.id, type=b.type, battery_level=b.battery_level)
            )

        inventory = StationInventory()
        for s in await self.get_all():
            inventory.add_station(
                Station(
                    id=s.id,
                    capacity=s.capacity,
                    name=s.name,
                    address=s.address or "",
                    location=Location(s.latitude, s.longitude),
                ),
                bikes_by_station.get(s.id, []),
            )
        return inventory


class BikeRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def move(self, bike_id: str, station_id: Optional[str]) -> None:
        """Record where *bike_id* is docked (None while on loan)."""
        await self.session.execute(
            update(BikeModel)
            .where(BikeModel.id == bike_id)
            .values(current_station_id=station_id)
        )


class ReservationRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def archive(self, reservation: Reservation) -> ReservationModel:
        row = await self.session.merge(to_model(reservation))
        await self.session.flush()
        return row

    async def get_by_id(self, reservation_id: str) -> Optional[ReservationModel]:
        return await self.session.get(ReservationModel, reservation_id)

    async def list_for_user(self, user_id: str) -> list[ReservationModel]:
        result = await self.session.execute(
            select(ReservationModel)
            .where(ReservationModel.user_id == user_id)
            .order_by(
                ReservationModel.end_time.desc(),
                ReservationModel.reservation_time.desc(),
            )
        )
        return list(result.scalars().all())


# ── Mapping ───────────────────────────────────────────────────────────


def to_model(reservation: Reservation) -> ReservationModel:
    settlement = reservation.cost_breakdown
    return ReservationModel(
        id=reservation.id,
        user_id=reservation.user_id,
        bike_id=reservation.bike_id,
        bike_type=reservation.bike_type,
        plan_name=reservation.plan_name,
        is_premium_user=reservation.is_premium_user,
        start_station_id=reservation.start_station_id,
        end_station_id=reservation.end_station_id,
        reservation_time=reservation.reservation_time,
        start_time=reservation.start_time,
        end_time=reservation.end_time,
        duration_minutes=reservation.duration_minutes,
        actual_minutes=reservation.actual_minutes,
        status=reservation.status,
        overdue=reservation.overdue,
        estimate_base_rate=reservation.estimate.base_rate,
        estimate_minutes_cost=reservation.estimate.minutes_cost,
        estimate_discount=reservation.estimate.discount,
        estimate_total_cost=reservation.estimate.total_cost,
        base_rate=settlement.base_rate if settlement else None,
        minutes_cost=settlement.minutes_cost if settlement else None,
        discount=settlement.discount if settlement else None,
        total_cost=settlement.total_cost if settlement else None,
    )


def to_entity(row: ReservationModel) -> Reservation:
    settlement = None
    if row.total_cost is not None:
        settlement = CostBreakdown(
            base_rate=row.base_rate,
            minutes_cost=row.minutes_cost,
            discount=row.discount,
            total_cost=row.total_cost,
        )
    return Reservation(
        id=row.id,
        user_id=row.user_id,
        bike_id=row.bike_id,
        bike_type=row.bike_type,
        plan_name=row.plan_name,
        is_premium_user=row.is_premium_user,
        start_station_id=row.start_station_id,
        end_station_id=row.end_station_id,
        reservation_time=row.reservation_time,
        start_time=row.start_time,
        end_time=row.end_time,
        duration_minutes=row.duration_minutes,
        actual_minutes=row.actual_minutes,
        status=row.status,
        overdue=row.overdue,
        estimate=CostBreakdown(
            base_rate=row.estimate_base_rate,
            minutes_cost=row.estimate_minutes_cost,
            discount=row.estimate_discount,
            total_cost=row.estimate_total_cost,
        ),
        cost_breakdown=settlement,
    )
