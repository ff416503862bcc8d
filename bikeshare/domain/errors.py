"""
Error kinds raised by the reservation core.

Recoverable errors (``BikeUnavailable``, ``AlreadyReserved``,
``InvalidTransition``, ``InvalidRequest``) are surfaced to the rider.
``StationFull`` and ``CapacityInvariantViolation`` signal an internal
consistency bug and are reported to operators only.
"""


class ReservationError(Exception):
    """Base class for reservation core errors."""


class BikeUnavailable(ReservationError):
    """No bike of the requested type (or the requested bike) is docked at the station."""


class AlreadyReserved(ReservationError):
    """The bike is already claimed by another live reservation."""


class StationFull(ReservationError):
    """A bike was returned to a station with no free dock."""


class InvalidTransition(ReservationError):
    """Raised when a reservation status change violates the state machine."""


class ReservationNotFound(InvalidTransition):
    """No live or archived reservation has this id."""


class InvalidRequest(ReservationError):
    """Caller-side validation failure (bad duration, unknown plan, ...)."""


class StationNotFound(InvalidRequest):
    """No station is registered under this id."""


class CapacityInvariantViolation(AssertionError):
    """Station counters broke ``standard + electric <= capacity``."""
