"""Process-wide map of live reservations, keyed by bike id."""

from __future__ import annotations

from typing import Iterator, Optional

from .entities import Reservation
from .errors import AlreadyReserved


class ReservationRegistry:
    """The only place that enforces one live reservation per bike.

    Callers must hold the bike's station lock around ``claim`` so the claim
    and the inventory decrement happen as one unit.
    """

    def __init__(self) -> None:
        self._by_bike: dict[str, Reservation] = {}

    def claim(self, bike_id: str, reservation: Reservation) -> None:
        existing = self._by_bike.get(bike_id)
        if existing is not None:
            raise AlreadyReserved(
                f"Bike {bike_id} is already held by reservation {existing.id}"
            )
        self._by_bike[bike_id] = reservation

    def release(self, bike_id: str) -> Optional[Reservation]:
        return self._by_bike.pop(bike_id, None)

    def get(self, bike_id: str) -> Optional[Reservation]:
        return self._by_bike.get(bike_id)

    def get_by_id(self, reservation_id: str) -> Optional[Reservation]:
        for reservation in self._by_bike.values():
            if reservation.id == reservation_id:
                return reservation
        return None

    def for_user(self, user_id: str) -> Optional[Reservation]:
        for reservation in self._by_bike.values():
            if reservation.user_id == user_id:
                return reservation
        return None

    def values(self) -> list[Reservation]:
        return list(self._by_bike.values())

    def __contains__(self, bike_id: object) -> bool:
        return bike_id in self._by_bike

    def __len__(self) -> int:
        return len(self._by_bike)

    def __iter__(self) -> Iterator[str]:
        return iter(self._by_bike)
