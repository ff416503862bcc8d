"""Wire the reservation core to PostgreSQL (stations, history) and Redis (ledger)."""

from __future__ import annotations

import logging

from bikeshare.config import settings
from bikeshare.domain.reservations import ReservationStateMachine
from bikeshare.infrastructure.database import async_session_factory
from bikeshare.infrastructure.history import SqlRideHistory
from bikeshare.infrastructure.ledger import RedisRideLedger
from bikeshare.infrastructure.redis_client import get_redis
from bikeshare.infrastructure.repositories import StationRepository

logger = logging.getLogger(__name__)


async def build_state_machine() -> ReservationStateMachine:
    async with async_session_factory() as session:
        inventory = await StationRepository(session).load_inventory()

    machine = ReservationStateMachine(
        inventory,
        ledger=RedisRideLedger(await get_redis(), settings.ledger_timezone),
        history=SqlRideHistory(async_session_factory),
        tick_seconds=settings.expiry_tick_seconds,
        max_duration_minutes=settings.max_reservation_minutes,
    )
    logger.info("Reservation core ready (%d stations)", len(inventory.list_stations()))
    return machine
