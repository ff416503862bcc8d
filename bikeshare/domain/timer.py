"""
Reservation Expiry Timer
========================

A cancellable countdown bound to one reservation, run as a task on the
current asyncio loop.

Remaining time is always ``started_at + duration - now``, recomputed on every
tick rather than decremented, so a process that was suspended reports the
right (possibly already negative) remaining time on resume.

Cancellation
------------
``cancel()`` before dispatch guarantees the callback never runs.  After
dispatch it is a no-op.  Both run on the loop thread, so there is no window
in which a cancelled timer can still fire.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ExpiryTimer:
    def __init__(self, tick_seconds: float = 1.0, clock: Clock = utcnow):
        self.tick_seconds = tick_seconds
        self._clock = clock
        self._started_at: Optional[datetime] = None
        self._duration: Optional[timedelta] = None
        self._on_expire: Optional[Callable[[], None]] = None
        self._task: Optional[asyncio.Task] = None
        self._cancelled = False
        self._fired = False

    # ── Public API ────────────────────────────────────────────────────

    def start(
        self,
        duration_minutes: float,
        on_expire: Callable[[], None],
        started_at: Optional[datetime] = None,
    ) -> None:
        """Start counting from *started_at* (default: now).  Needs a running loop."""
        if self._task is not None:
            raise RuntimeError("Timer already started")
        self._started_at = started_at or self._clock()
        self._duration = timedelta(minutes=duration_minutes)
        self._on_expire = on_expire
        self._task = asyncio.get_running_loop().create_task(self._run())

    def cancel(self) -> None:
        if self._fired or self._cancelled:
            return
        self._cancelled = True
        if self._task is not None and not self._task.done():
            self._task.cancel()

    def remaining(self) -> timedelta:
        if self._started_at is None or self._duration is None:
            raise RuntimeError("Timer not started")
        return self._started_at + self._duration - self._clock()

    @property
    def deadline(self) -> Optional[datetime]:
        if self._started_at is None or self._duration is None:
            return None
        return self._started_at + self._duration

    @property
    def pending(self) -> bool:
        return self._task is not None and not (self._fired or self._cancelled)

    @property
    def fired(self) -> bool:
        return self._fired

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    # ── Internals ─────────────────────────────────────────────────────

    async def _run(self) -> None:
        while True:
            left = self.remaining().total_seconds()
            if left <= 0:
                break
            await asyncio.sleep(min(self.tick_seconds, left))
        self._dispatch()

    def _dispatch(self) -> None:
        if self._cancelled or self._on_expire is None:
            return
        self._fired = True
        try:
            self._on_expire()
        except Exception:
            logger.exception("Expiry callback failed")
