"""
Daily ride ledger -- the source of ``rides_completed_today`` for pricing.

The day boundary is midnight in a configured IANA timezone (``UTC`` by
default).  Rider-local midnight is not inferred.
"""

from __future__ import annotations

from collections import Counter
from datetime import date
from typing import Protocol
from zoneinfo import ZoneInfo

from .timer import Clock, utcnow


class RideLedger(Protocol):
    async def rides_today(self, user_id: str) -> int: ...

    async def record_ride(self, user_id: str) -> None: ...


def ledger_day(clock: Clock, timezone_name: str) -> date:
    return clock().astimezone(ZoneInfo(timezone_name)).date()


class InMemoryRideLedger:
    def __init__(self, timezone_name: str = "UTC", clock: Clock = utcnow):
        self.timezone_name = timezone_name
        self._clock = clock
        self._counts: Counter[tuple[str, date]] = Counter()

    async def rides_today(self, user_id: str) -> int:
        return self._counts[(user_id, ledger_day(self._clock, self.timezone_name))]

    async def record_ride(self, user_id: str) -> None:
        self._counts[(user_id, ledger_day(self._clock, self.timezone_name))] += 1
