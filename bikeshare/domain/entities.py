"""
Domain entities with business logic.

Patterns used
-------------
- **State Pattern** on ``Reservation``: enforces valid lifecycle transitions
  (RESERVED -> ACTIVE -> EXPIRED -> ENDED, RESERVED -> CANCELLED).
- ``Station.available_docks`` is derived from capacity and bike counters,
  never stored, so the two can't drift apart.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from .enums import RESERVATION_TRANSITIONS, TERMINAL_STATUSES, BikeType, ReservationStatus
from .errors import InvalidTransition
from .pricing import CostBreakdown


# ── Value Object ──────────────────────────────────────────────────────


@dataclass(frozen=True)
class Location:
    latitude: float
    longitude: float


# ── Entities ──────────────────────────────────────────────────────────


@dataclass
class Station:
    id: str
    capacity: int
    available_standard_bikes: int = 0
    available_electric_bikes: int = 0
    name: str = ""
    address: str = ""
    location: Optional[Location] = None

    @property
    def available_bikes(self) -> int:
        return self.available_standard_bikes + self.available_electric_bikes

    @property
    def available_docks(self) -> int:
        return self.capacity - self.available_bikes

    def available(self, bike_type: BikeType) -> int:
        if bike_type is BikeType.ELECTRIC:
            return self.available_electric_bikes
        return self.available_standard_bikes


@dataclass
class Bike:
    id: str
    type: BikeType = BikeType.STANDARD
    battery_level: Optional[int] = None  # ELECTRIC only
    current_station_id: Optional[str] = None  # None while out on a reservation


@dataclass
class Reservation:
    id: str
    user_id: str
    bike_id: str
    start_station_id: str
    reservation_time: datetime
    duration_minutes: int
    estimate: CostBreakdown
    bike_type: BikeType = BikeType.STANDARD
    plan_name: str = "Standard"
    is_premium_user: bool = False
    status: ReservationStatus = ReservationStatus.RESERVED
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    end_station_id: Optional[str] = None
    actual_minutes: Optional[float] = None
    overdue: bool = False  # flagged for penalty billing on expiry
    cost_breakdown: Optional[CostBreakdown] = field(default=None)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def final_cost(self) -> CostBreakdown:
        """Settlement breakdown once ended, the upfront estimate before that."""
        return self.cost_breakdown or self.estimate

    @property
    def docked_at(self) -> Optional[str]:
        """Station the bike was returned to, or None while it is still out."""
        if self.status is ReservationStatus.ENDED:
            return self.end_station_id
        if self.status is ReservationStatus.CANCELLED:
            return self.start_station_id
        return None

    def can_transition_to(self, new_status: ReservationStatus) -> bool:
        return new_status in RESERVATION_TRANSITIONS.get(self.status, set())

    def transition_to(self, new_status: ReservationStatus) -> None:
        """Move to *new_status* if the transition is legal, else raise."""
        if not self.can_transition_to(new_status):
            raise InvalidTransition(
                f"Cannot transition reservation {self.id} "
                f"from {self.status.value} to {new_status.value}"
            )
        self.status = new_status
