"""Ride history: the archive of reservations that reached ENDED or CANCELLED."""

from __future__ import annotations

from typing import Optional, Protocol

from .entities import Reservation


class RideHistory(Protocol):
    async def archive(self, reservation: Reservation) -> None: ...

    async def get(self, reservation_id: str) -> Optional[Reservation]: ...

    async def list_for_user(self, user_id: str) -> list[Reservation]: ...


class InMemoryRideHistory:
    def __init__(self) -> None:
        self._rows: dict[str, Reservation] = {}

    async def archive(self, reservation: Reservation) -> None:
        self._rows[reservation.id] = reservation

    async def get(self, reservation_id: str) -> Optional[Reservation]:
        return self._rows.get(reservation_id)

    async def list_for_user(self, user_id: str) -> list[Reservation]:
        rows = [r for r in self._rows.values() if r.user_id == user_id]
        # newest first
        return sorted(rows, key=lambda r: r.end_time or r.reservation_time, reverse=True)
