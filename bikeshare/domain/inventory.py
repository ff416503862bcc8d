"""
Station Inventory
=================

Single owner of per-station bike counts and of which bikes are docked where.

Capacity invariant
------------------
    available_standard_bikes + available_electric_bikes <= capacity

checked after every mutation.  A violation is a programming error and
raises ``CapacityInvariantViolation`` instead of clamping.

Locking
-------
One ``asyncio.Lock`` per station.  The state machine holds it across
"take a bike from the dock" and "claim the bike in the registry" so two
riders racing for the last bike are serialised.  Reservations at different
stations never contend.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from dataclasses import replace
from typing import Iterable, Optional

from .entities import Bike, Station
from .enums import BikeType
from .errors import (
    BikeUnavailable,
    CapacityInvariantViolation,
    InvalidRequest,
    StationFull,
    StationNotFound,
)

logger = logging.getLogger(__name__)


class StationInventory:
    def __init__(self) -> None:
        self._stations: dict[str, Station] = {}
        self._docked: dict[str, dict[BikeType, deque[str]]] = {}
        self._bikes: dict[str, Bike] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    # ── Loading ───────────────────────────────────────────────────────

    def add_station(self, station: Station, bikes: Iterable[Bike] = ()) -> None:
        """Register *station* with the bikes currently docked there.

        Counters on the incoming station are ignored and rebuilt from *bikes*.
        """
        if station.capacity <= 0:
            raise InvalidRequest(f"Station {station.id} must have positive capacity")
        if station.id in self._stations:
            raise InvalidRequest(f"Station {station.id} is already registered")

        pools: dict[BikeType, deque[str]] = {t: deque() for t in BikeType}
        docked = list(bikes)
        if len(docked) > station.capacity:
            raise CapacityInvariantViolation(
                f"Station {station.id}: {len(docked)} bikes exceed capacity "
                f"{station.capacity}"
            )
        seen: set[str] = set()
        for bike in docked:
            if bike.id in self._bikes or bike.id in seen:
                raise InvalidRequest(f"Bike {bike.id} is already registered")
            seen.add(bike.id)

        # nothing is touched until the whole load has been validated
        for bike in docked:
            bike.current_station_id = station.id
            self._bikes[bike.id] = bike
            pools[bike.type].append(bike.id)

        self._stations[station.id] = replace(
            station,
            available_standard_bikes=len(pools[BikeType.STANDARD]),
            available_electric_bikes=len(pools[BikeType.ELECTRIC]),
        )
        self._docked[station.id] = pools
        self._locks[station.id] = asyncio.Lock()
        self._check_invariant(station.id)

    # ── Reads ─────────────────────────────────────────────────────────

    def has_station(self, station_id: str) -> bool:
        return station_id in self._stations

    def get_station(self, station_id: str) -> Station:
        """Return a snapshot copy; callers never see the live object."""
        return replace(self._station(station_id))

    def list_stations(self) -> list[Station]:
        return [replace(s) for s in self._stations.values()]

    def get_bike(self, bike_id: str) -> Optional[Bike]:
        bike = self._bikes.get(bike_id)
        return replace(bike) if bike else None

    def bike_type_of(self, bike_id: str) -> BikeType:
        bike = self._bikes.get(bike_id)
        if bike is None:
            raise InvalidRequest(f"Unknown bike: {bike_id}")
        return bike.type

    def lock_for(self, station_id: str) -> asyncio.Lock:
        self._station(station_id)
        return self._locks[station_id]

    # ── Mutations ─────────────────────────────────────────────────────

    def reserve_bike(
        self,
        station_id: str,
        bike_type: Optional[BikeType] = None,
        bike_id: Optional[str] = None,
    ) -> str:
        """Undock a bike and return its id.

        With *bike_id* that exact bike must be docked here; otherwise the
        longest-docked bike of *bike_type* (default STANDARD) is taken.
        """
        station = self._station(station_id)
        pools = self._docked[station_id]

        if bike_id is not None:
            bike = self._bikes.get(bike_id)
            if bike is None:
                raise InvalidRequest(f"Unknown bike: {bike_id}")
            if bike_type is not None and bike.type is not bike_type:
                raise InvalidRequest(f"Bike {bike_id} is not {bike_type.value}")
            if bike.current_station_id != station_id:
                raise BikeUnavailable(
                    f"Bike {bike_id} is not docked at station {station_id}"
                )
            pools[bike.type].remove(bike_id)
        else:
            bike_type = bike_type or BikeType.STANDARD
            if not pools[bike_type]:
                raise BikeUnavailable(
                    f"No {bike_type.value} bike available at station {station_id}"
                )
            bike = self._bikes[pools[bike_type].popleft()]

        bike.current_station_id = None
        if bike.type is BikeType.ELECTRIC:
            station.available_electric_bikes -= 1
        else:
            station.available_standard_bikes -= 1
        self._check_invariant(station_id)
        return bike.id

    def release_bike(self, station_id: str, bike_id: str, bike_type: BikeType) -> None:
        """Dock *bike_id* at *station_id*."""
        station = self._station(station_id)
        bike = self._bikes.get(bike_id)
        if bike is None:
            raise InvalidRequest(f"Unknown bike: {bike_id}")
        if bike.type is not bike_type:
            raise InvalidRequest(f"Bike {bike_id} is not {bike_type.value}")
        if bike.current_station_id is not None:
            raise CapacityInvariantViolation(
                f"Bike {bike_id} is already docked at {bike.current_station_id}"
            )
        if station.available_bikes >= station.capacity:
            logger.critical(
                "Station %s is full (capacity=%d) on release of bike %s",
                station_id,
                station.capacity,
                bike_id,
            )
            raise StationFull(f"Station {station_id} has no free dock")

        self._docked[station_id][bike_type].append(bike_id)
        bike.current_station_id = station_id
        if bike_type is BikeType.ELECTRIC:
            station.available_electric_bikes += 1
        else:
            station.available_standard_bikes += 1
        self._check_invariant(station_id)

    # ── Internals ─────────────────────────────────────────────────────

    def _station(self, station_id: str) -> Station:
        station = self._stations.get(station_id)
        if station is None:
            raise StationNotFound(f"Unknown station: {station_id}")
        return station

    def _check_invariant(self, station_id: str) -> None:
        station = self._stations[station_id]
        pools = self._docked[station_id]
        if (
            station.available_standard_bikes < 0
            or station.available_electric_bikes < 0
            or station.available_bikes > station.capacity
            or station.available_standard_bikes != len(pools[BikeType.STANDARD])
            or station.available_electric_bikes != len(pools[BikeType.ELECTRIC])
        ):
            logger.critical("Capacity invariant broken at station %s: %r", station_id, station)
            raise CapacityInvariantViolation(
                f"Station {station_id}: standard={station.available_standard_bikes} "
                f"electric={station.available_electric_bikes} "
                f"capacity={station.capacity}"
            )
