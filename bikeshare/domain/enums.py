"""Domain enumerations and state-transition rules."""

import enum


class ReservationStatus(str, enum.Enum):
    RESERVED = "RESERVED"
    ACTIVE = "ACTIVE"
    EXPIRED = "EXPIRED"
    ENDED = "ENDED"
    CANCELLED = "CANCELLED"


# State machine: maps current status -> set of valid next statuses.
# EXPIRED is not terminal: the rider still owes the bike and must end().
RESERVATION_TRANSITIONS: dict[ReservationStatus, set[ReservationStatus]] = {
    ReservationStatus.RESERVED: {
        ReservationStatus.ACTIVE,
        ReservationStatus.EXPIRED,
        ReservationStatus.CANCELLED,
    },
    ReservationStatus.ACTIVE: {ReservationStatus.EXPIRED, ReservationStatus.ENDED},
    ReservationStatus.EXPIRED: {ReservationStatus.ENDED},
    ReservationStatus.ENDED: set(),
    ReservationStatus.CANCELLED: set(),
}

TERMINAL_STATUSES = frozenset({ReservationStatus.ENDED, ReservationStatus.CANCELLED})


class BikeType(str, enum.Enum):
    STANDARD = "STANDARD"
    ELECTRIC = "ELECTRIC"
