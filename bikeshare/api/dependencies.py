"""FastAPI dependency injection helpers."""

from dataclasses import dataclass

from fastapi import Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from bikeshare.domain.pricing import PREMIUM, PricingPlan, get_plan
from bikeshare.domain.reservations import ReservationStateMachine
from bikeshare.infrastructure.database import async_session_factory


@dataclass(frozen=True)
class Rider:
    user_id: str
    plan: PricingPlan

    @property
    def is_premium(self) -> bool:
        return self.plan is PREMIUM


async def get_db() -> AsyncSession:  # type: ignore[misc]
    """Yield an async DB session; commit on success, rollback on error."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


def get_machine(request: Request) -> ReservationStateMachine:
    return request.app.state.machine


def get_rider(
    user_id: str = Header(..., alias="X-User-Id", min_length=1, max_length=64),
    plan: str = Header("STANDARD", alias="X-User-Plan"),
) -> Rider:
    """Identity is set by the authenticating gateway in front of this service."""
    return Rider(user_id=user_id, plan=get_plan(plan))
