"""
Redis-backed daily ride ledger.

One counter per rider per day: ``ledger:rides:{user_id}:{YYYY-MM-DD}``,
incremented with INCR when a ride ends and left to expire two days later.
"""

from __future__ import annotations

import redis.asyncio as aioredis

from bikeshare.domain.ledger import ledger_day
from bikeshare.domain.timer import Clock, utcnow

KEY_TTL_SECONDS = 2 * 24 * 60 * 60


class RedisRideLedger:
    def __init__(
        self,
        client: aioredis.Redis,
        timezone_name: str = "UTC",
        clock: Clock = utcnow,
    ):
        self.redis = client
        self.timezone_name = timezone_name
        self._clock = clock

    def key(self, user_id: str) -> str:
        day = ledger_day(self._clock, self.timezone_name)
        return f"ledger:rides:{user_id}:{day.isoformat()}"

    async def rides_today(self, user_id: str) -> int:
        value = await self.redis.get(self.key(user_id))
        return int(value) if value else 0

    async def record_ride(self, user_id: str) -> None:
        key = self.key(user_id)
        await self.redis.incr(key)
        await self.redis.expire(key, KEY_TTL_SECONDS)
