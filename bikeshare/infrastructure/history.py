"""Ride-history archive backed by the ``reservations`` table."""

from __future__ import annotations

from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .repositories import BikeRepository, ReservationRepository, to_entity
from bikeshare.domain.entities import Reservation


class SqlRideHistory:
    """Opens a short-lived session per call; commits on archive.

    Archiving a settled ride also moves the bike row to the station it was
    docked at, in the same transaction, so a restart reloads it there.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def archive(self, reservation: Reservation) -> None:
        async with self.session_factory() as session:
            await ReservationRepository(session).archive(reservation)
            if reservation.docked_at is not None:
                await BikeRepository(session).move(reservation.bike_id, reservation.docked_at)
            await session.commit()

    async def get(self, reservation_id: str) -> Optional[Reservation]:
        async with self.session_factory() as session:
            row = await ReservationRepository(session).get_by_id(reservation_id)
            return to_entity(row) if row else None

    async def list_for_user(self, user_id: str) -> list[Reservation]:
        async with self.session_factory() as session:
            rows = await ReservationRepository(session).list_for_user(user_id)
            return [to_entity(r) for r in rows]
