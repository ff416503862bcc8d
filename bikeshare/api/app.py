"""
FastAPI application factory.

* Registers routes for reservations, stations, pricing and admin.
* Builds the reservation core on startup (unless one is injected) and
  cancels its expiry timers on shutdown.
* Maps domain errors to HTTP responses; internal consistency failures are
  logged for operators and never described to the rider.
* Applies rate-limiting middleware.
* Swagger / OpenAPI UI available at ``/docs``.
"""

from contextlib import asynccontextmanager
import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from bikeshare.api.middleware import limiter
from bikeshare.api.routes import admin, pricing, reservations, stations
from bikeshare.config import settings
from bikeshare.domain.errors import (
    AlreadyReserved,
    BikeUnavailable,
    CapacityInvariantViolation,
    InvalidRequest,
    InvalidTransition,
    ReservationNotFound,
    StationFull,
    StationNotFound,
)
from bikeshare.domain.reservations import ReservationStateMachine
from bikeshare.infrastructure.bootstrap import build_state_machine
from bikeshare.infrastructure.redis_client import close_redis

logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the reservation core on startup; flush pending writes and stop its timers on shutdown."""
    owned = getattr(app.state, "machine", None) is None
    if owned:
        app.state.machine = await build_state_machine()
    yield
    await app.state.machine.flush_pending()
    app.state.machine.shutdown()
    if owned:
        await close_redis()


# ── Error mapping ─────────────────────────────────────────────────────


async def _choose_another_bike(request: Request, exc: Exception) -> JSONResponse:
    return JSONResponse(
        status_code=409,
        content={"detail": "Please choose another bike", "reason": str(exc)},
    )


async def _not_found(request: Request, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=404, content={"detail": str(exc)})


async def _invalid_transition(request: Request, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=409, content={"detail": str(exc)})


async def _invalid_request(request: Request, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=422, content={"detail": str(exc)})


async def _internal_consistency(request: Request, exc: Exception) -> JSONResponse:
    logger.critical(
        "Inventory consistency failure on %s %s: %s",
        request.method,
        request.url.path,
        exc,
        exc_info=exc,
    )
    return JSONResponse(status_code=500, content={"detail": "Internal error"})


def create_app(machine: Optional[ReservationStateMachine] = None) -> FastAPI:
    app = FastAPI(
        title="Bike Share Reservation API",
        description=(
            "Reserves bikes at docking stations, tracks each ride from "
            "reservation to return, and bills it from the rider's plan and "
            "daily usage.  Safe under concurrent reservation attempts."
        ),
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.machine = machine

    # Rate limiter
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    # Domain errors (most specific class wins)
    app.add_exception_handler(BikeUnavailable, _choose_another_bike)
    app.add_exception_handler(AlreadyReserved, _choose_another_bike)
    app.add_exception_handler(ReservationNotFound, _not_found)
    app.add_exception_handler(StationNotFound, _not_found)
    app.add_exception_handler(InvalidTransition, _invalid_transition)
    app.add_exception_handler(InvalidRequest, _invalid_request)
    app.add_exception_handler(StationFull, _internal_consistency)
    app.add_exception_handler(CapacityInvariantViolation, _internal_consistency)

    # Routers
    app.include_router(reservations.router, prefix="/api/v1")
    app.include_router(stations.router, prefix="/api/v1")
    app.include_router(pricing.router, prefix="/api/v1")
    app.include_router(admin.router, prefix="/api/v1")

    return app
