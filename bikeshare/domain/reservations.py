"""
Reservation State Machine
=========================

Drives every reservation through its lifecycle and coordinates the
collaborators around it.

    create   ->  RESERVED      bike undocked + claimed, estimate priced, timer started
    unlock   RESERVED -> ACTIVE           start_time recorded, timer keeps running
    expire   RESERVED|ACTIVE -> EXPIRED   overdue flag set, bike still on loan
    end      ACTIVE|EXPIRED -> ENDED      settlement priced, bike docked, archived
    cancel   RESERVED -> CANCELLED        bike re-docked at start, archived

Concurrency safety
------------------
* ``create`` holds the start station's lock across
  ``StationInventory.reserve_bike`` and ``ReservationRegistry.claim``, so two
  riders can never both take the last bike.
* ``end`` / ``cancel`` hold the lock of the station receiving the bike and
  re-validate the status once inside it.
* No lock is held while awaiting the ledger or the history store.

Persistence
-----------
A settled ride is kept in memory until the history store accepts it, and a
finished ride counts against the rider's quota until the ledger records it.
A failing store is logged at critical level and retried by
``flush_pending``; the ride is never lost from view in the meantime.

Settlement
----------
The estimate is priced from the rider-chosen window at creation.  At
``end`` the ride is priced again from the actual elapsed minutes (from
unlock, or from reservation time if never unlocked) and only that
settlement is stored as the final cost.
"""

from __future__ import annotations

import logging
import uuid
from datetime import timedelta
from functools import partial
from typing import Callable, Optional

from .entities import Reservation
from .enums import BikeType, ReservationStatus
from .errors import AlreadyReserved, InvalidRequest, InvalidTransition, ReservationNotFound
from .history import InMemoryRideHistory, RideHistory
from .inventory import StationInventory
from .ledger import InMemoryRideLedger, RideLedger
from .pricing import CostBreakdown, PricingEngine, RideRequest, plan_for
from .registry import ReservationRegistry
from .timer import Clock, ExpiryTimer, utcnow

logger = logging.getLogger(__name__)

NO_CHARGE = CostBreakdown(base_rate=0.0, minutes_cost=0.0, discount=0.0, total_cost=0.0)


class ReservationStateMachine:
    def __init__(
        self,
        inventory: StationInventory,
        registry: Optional[ReservationRegistry] = None,
        *,
        ledger: Optional[RideLedger] = None,
        history: Optional[RideHistory] = None,
        clock: Clock = utcnow,
        tick_seconds: float = 1.0,
        max_duration_minutes: int = 24 * 60,
    ):
        self.inventory = inventory
        self.registry = registry if registry is not None else ReservationRegistry()
        self.ledger: RideLedger = ledger if ledger is not None else InMemoryRideLedger(clock=clock)
        self.history: RideHistory = history if history is not None else InMemoryRideHistory()
        self.pricing = PricingEngine
        self.tick_seconds = tick_seconds
        self.max_duration_minutes = max_duration_minutes
        self._clock = clock
        self._timers: dict[str, ExpiryTimer] = {}
        # settled rides the history store or the ledger has not yet accepted
        self._unarchived: dict[str, Reservation] = {}
        self._uncounted: list[str] = []
        self._expiry_listeners: list[Callable[[Reservation], None]] = []

    # ── Events ────────────────────────────────────────────────────────

    async def create(
        self,
        user_id: str,
        station_id: str,
        duration_minutes: int,
        *,
        is_premium_user: bool = False,
        bike_id: Optional[str] = None,
        bike_type: Optional[BikeType] = None,
    ) -> Reservation:
        """Reserve a bike at *station_id*.  Nothing changes if this raises."""
        if not 0 < duration_minutes <= self.max_duration_minutes:
            raise InvalidRequest(
                f"durationMinutes must be between 1 and {self.max_duration_minutes}"
            )
        lock = self.inventory.lock_for(station_id)

        plan = plan_for(is_premium_user)
        rides_today = await self._rides_today(user_id)
        estimate = self.pricing.compute_cost(
            RideRequest(
                duration_minutes=duration_minutes,
                is_premium_user=is_premium_user,
                rides_completed_today=rides_today,
            ),
            plan,
        )

        async with lock:
            held = self.registry.for_user(user_id)
            if held is not None:
                raise InvalidRequest(f"Rider already holds reservation {held.id}")
            if bike_id is not None and bike_id in self.registry:
                raise AlreadyReserved(f"Bike {bike_id} was just taken")

            taken = self.inventory.reserve_bike(station_id, bike_type, bike_id)
            taken_type = self.inventory.bike_type_of(taken)
            reservation = Reservation(
                id=str(uuid.uuid4()),
                user_id=user_id,
                bike_id=taken,
                bike_type=taken_type,
                start_station_id=station_id,
                reservation_time=self._clock(),
                duration_minutes=duration_minutes,
                estimate=estimate,
                plan_name=plan.name,
                is_premium_user=is_premium_user,
            )
            try:
                self.registry.claim(taken, reservation)
            except AlreadyReserved:
                self.inventory.release_bike(station_id, taken, taken_type)
                raise
            self._start_timer(reservation)

        logger.info(
            "Reservation %s created: bike=%s station=%s window=%dmin",
            reservation.id,
            taken,
            station_id,
            duration_minutes,
        )
        return reservation

    async def unlock(self, reservation_id: str) -> Reservation:
        """Start the ride.  The expiry window still counts from reservation time."""
        reservation = await self._resolve(reservation_id)
        reservation.transition_to(ReservationStatus.ACTIVE)
        reservation.start_time = self._clock()
        logger.info("Reservation %s unlocked", reservation.id)
        return reservation

    def expire(self, reservation_id: str) -> Reservation:
        """Advisory timeout: flags the ride overdue but leaves the bike on loan."""
        reservation = self.registry.get_by_id(reservation_id)
        if reservation is None:
            raise ReservationNotFound(f"No live reservation {reservation_id}")
        reservation.transition_to(ReservationStatus.EXPIRED)
        reservation.overdue = True
        self._timers.pop(reservation_id, None)
        logger.warning(
            "Reservation %s expired with bike %s still out", reservation.id, reservation.bike_id
        )

        for listener in self._expiry_listeners:
            try:
                listener(reservation)
            except Exception:
                logger.exception("Expiry listener failed for %s", reservation.id)
        return reservation

    async def end(self, reservation_id: str, end_station_id: str) -> Reservation:
        """Return the bike at *end_station_id* and settle the ride."""
        reservation = await self._resolve(reservation_id)
        self._require(reservation, ReservationStatus.ENDED)
        lock = self.inventory.lock_for(end_station_id)
        rides_today = await self._rides_today(reservation.user_id)

        async with lock:
            self._require_live(reservation, ReservationStatus.ENDED)
            end_time = self._clock()
            started = reservation.start_time or reservation.reservation_time
            actual_minutes = max(0.0, (end_time - started).total_seconds() / 60)
            settlement = self.pricing.compute_cost(
                RideRequest(
                    duration_minutes=actual_minutes,
                    is_premium_user=reservation.is_premium_user,
                    rides_completed_today=rides_today,
                ),
                plan_for(reservation.is_premium_user),
            )

            # raises StationFull before anything has changed
            self.inventory.release_bike(
                end_station_id, reservation.bike_id, reservation.bike_type
            )
            reservation.transition_to(ReservationStatus.ENDED)
            reservation.end_time = end_time
            reservation.end_station_id = end_station_id
            reservation.actual_minutes = actual_minutes
            reservation.cost_breakdown = settlement
            self.registry.release(reservation.bike_id)
            self._cancel_timer(reservation.id)

        logger.info(
            "Reservation %s ended at %s after %.1fmin, total=%.2f",
            reservation.id,
            end_station_id,
            actual_minutes,
            settlement.total_cost,
        )
        await self._persist(reservation, count_ride=True)
        return reservation

    async def cancel(self, reservation_id: str) -> Reservation:
        """Give the bike back to its start station before returning."""
        reservation = await self._resolve(reservation_id)
        self._require(reservation, ReservationStatus.CANCELLED)

        async with self.inventory.lock_for(reservation.start_station_id):
            self._require_live(reservation, ReservationStatus.CANCELLED)
            self.inventory.release_bike(
                reservation.start_station_id, reservation.bike_id, reservation.bike_type
            )
            reservation.transition_to(ReservationStatus.CANCELLED)
            reservation.end_time = self._clock()
            reservation.cost_breakdown = NO_CHARGE
            self.registry.release(reservation.bike_id)
            self._cancel_timer(reservation.id)

        logger.info("Reservation %s cancelled", reservation.id)
        await self._persist(reservation, count_ride=False)
        return reservation

    # ── Queries ───────────────────────────────────────────────────────

    async def get(self, reservation_id: str) -> Reservation:
        return await self._resolve(reservation_id)

    def active_for_user(self, user_id: str) -> Optional[Reservation]:
        return self.registry.for_user(user_id)

    async def history_for_user(self, user_id: str) -> list[Reservation]:
        archived = await self.history.list_for_user(user_id)
        pending = [r for r in self._unarchived.values() if r.user_id == user_id]
        if not pending:
            return archived
        merged = {r.id: r for r in archived}
        merged.update((r.id, r) for r in pending)
        return sorted(
            merged.values(),
            key=lambda r: r.end_time or r.reservation_time,
            reverse=True,
        )

    def live_reservations(self) -> list[Reservation]:
        return self.registry.values()

    def remaining(self, reservation_id: str) -> Optional[timedelta]:
        """Time left in the window; negative once overdue, None when not live."""
        reservation = self.registry.get_by_id(reservation_id)
        if reservation is None:
            return None
        deadline = reservation.reservation_time + timedelta(minutes=reservation.duration_minutes)
        return deadline - self._clock()

    def timer_for(self, reservation_id: str) -> Optional[ExpiryTimer]:
        return self._timers.get(reservation_id)

    def add_expiry_listener(self, listener: Callable[[Reservation], None]) -> None:
        self._expiry_listeners.append(listener)

    def shutdown(self) -> None:
        """Cancel every pending timer."""
        for timer in self._timers.values():
            timer.cancel()
        self._timers.clear()

    @property
    def pending_writes(self) -> int:
        return len(self._unarchived) + len(self._uncounted)

    async def flush_pending(self) -> int:
        """Retry archiving and counting settled rides.  Returns what is still outstanding."""
        for reservation_id, reservation in list(self._unarchived.items()):
            try:
                await self.history.archive(reservation)
            except Exception:
                logger.critical(
                    "Could not archive reservation %s; kept for retry",
                    reservation_id,
                    exc_info=True,
                )
                continue
            self._unarchived.pop(reservation_id, None)

        uncounted, self._uncounted = self._uncounted, []
        for position, user_id in enumerate(uncounted):
            try:
                await self.ledger.record_ride(user_id)
            except Exception:
                logger.critical(
                    "Could not record ride for %s; kept for retry", user_id, exc_info=True
                )
                self._uncounted.extend(uncounted[position:])
                break
        return self.pending_writes

    # ── Internals ─────────────────────────────────────────────────────

    async def _persist(self, reservation: Reservation, *, count_ride: bool) -> None:
        self._unarchived[reservation.id] = reservation
        if count_ride:
            self._uncounted.append(reservation.user_id)
        await self.flush_pending()

    async def _rides_today(self, user_id: str) -> int:
        return await self.ledger.rides_today(user_id) + self._uncounted.count(user_id)

    async def _resolve(self, reservation_id: str) -> Reservation:
        reservation = self.registry.get_by_id(reservation_id)
        if reservation is None:
            reservation = self._unarchived.get(reservation_id)
        if reservation is None:
            reservation = await self.history.get(reservation_id)
        if reservation is None:
            raise ReservationNotFound(f"Reservation not found: {reservation_id}")
        return reservation

    @staticmethod
    def _require(reservation: Reservation, target: ReservationStatus) -> None:
        if not reservation.can_transition_to(target):
            raise InvalidTransition(
                f"Cannot move reservation {reservation.id} "
                f"from {reservation.status.value} to {target.value}"
            )

    def _require_live(self, reservation: Reservation, target: ReservationStatus) -> None:
        # status may have changed while waiting for the station lock
        if self.registry.get(reservation.bike_id) is not reservation:
            raise InvalidTransition(f"Reservation {reservation.id} is no longer live")
        self._require(reservation, target)

    def _start_timer(self, reservation: Reservation) -> None:
        timer = ExpiryTimer(tick_seconds=self.tick_seconds, clock=self._clock)
        timer.start(
            reservation.duration_minutes,
            partial(self.expire, reservation.id),
            started_at=reservation.reservation_time,
        )
        self._timers[reservation.id] = timer

    def _cancel_timer(self, reservation_id: str) -> None:
        timer = self._timers.pop(reservation_id, None)
        if timer is not None:
            timer.cancel()
