"""
Redis connection for the daily ride ledger.

Counters are read back as ``str`` (``decode_responses``) and parsed by the
ledger.  The pool is created lazily so importing this module never opens
a connection.
"""

from typing import Optional

import redis.asyncio as aioredis

from bikeshare.config import settings

_pool: Optional[aioredis.ConnectionPool] = None


async def get_redis() -> aioredis.Redis:
    """Return a client on the shared ledger pool."""
    global _pool
    if _pool is None:
        _pool = aioredis.ConnectionPool.from_url(
            settings.redis_url, decode_responses=True
        )
    return aioredis.Redis(connection_pool=_pool)


async def close_redis() -> None:
    global _pool
    if _pool is not None:
        await _pool.disconnect()
        _pool = None
