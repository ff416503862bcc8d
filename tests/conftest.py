"""
Shared test fixtures.

The reservation core runs fully in memory here: a hand-built inventory, the
in-memory ledger / history, and a controllable clock so expiry and
settlement can be driven without real waiting.  Persistence tests use an
in-memory SQLite database (via aiosqlite) holding only the
``reservations`` table; the PostGIS-backed station tables are not needed.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator, Callable

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from bikeshare.domain.entities import Bike, Location, Station
from bikeshare.domain.enums import BikeType
from bikeshare.domain.inventory import StationInventory
from bikeshare.domain.ledger import InMemoryRideLedger
from bikeshare.domain.reservations import ReservationStateMachine
from bikeshare.infrastructure.database import Base
from bikeshare.infrastructure.models import BikeModel, ReservationModel


# ── Test DB (SQLite in-memory) ────────────────────────────────────────

TEST_DB_URL = "sqlite+aiosqlite:///:memory:"

test_engine = create_async_engine(TEST_DB_URL, echo=False)
TestSessionFactory = async_sessionmaker(
    test_engine, class_=AsyncSession, expire_on_commit=False
)


# ── Helpers ───────────────────────────────────────────────────────────


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime = datetime(2026, 10, 19, 8, 0, tzinfo=timezone.utc)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta) -> None:
        self.now += timedelta(**delta)


def make_inventory() -> StationInventory:
    """
    st-a     capacity 4: 2 standard + 1 electric
    st-b     capacity 3: 1 standard
    st-full  capacity 2: 2 standard (no free dock)
    """
    inventory = StationInventory()
    inventory.add_station(
        Station(id="st-a", capacity=4, name="Central Square", location=Location(10.7769, 106.7009)),
        [
            Bike(id="std-1"),
            Bike(id="std-2"),
            Bike(id="ele-1", type=BikeType.ELECTRIC, battery_level=90),
        ],
    )
    inventory.add_station(
        Station(id="st-b", capacity=3, name="Riverside Park", location=Location(10.7740, 106.7060)),
        [Bike(id="std-3")],
    )
    inventory.add_station(
        Station(id="st-full", capacity=2, name="Harbour Front", location=Location(10.7680, 106.7070)),
        [Bike(id="std-4"), Bike(id="std-5")],
    )
    return inventory


async def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(0.005)


# ── Fixtures ──────────────────────────────────────────────────────────


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def inventory() -> StationInventory:
    return make_inventory()


@pytest_asyncio.fixture
async def machine(inventory, clock) -> AsyncGenerator[ReservationStateMachine, None]:
    m = ReservationStateMachine(
        inventory,
        ledger=InMemoryRideLedger(clock=clock),
        clock=clock,
        tick_seconds=0.01,
    )
    yield m
    m.shutdown()


ARCHIVE_TABLES = [BikeModel.__table__, ReservationModel.__table__]


@pytest_asyncio.fixture
async def db_session_factory() -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """Create the bikes and reservations tables, yield a session factory, then drop them."""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all, tables=ARCHIVE_TABLES)

    yield TestSessionFactory

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all, tables=ARCHIVE_TABLES)
    await test_engine.dispose()
