"""
Pricing endpoints
=================

GET /api/v1/pricing/plans     -- the read-only pricing plans
GET /api/v1/pricing/estimate  -- price a hypothetical ride
"""

from fastapi import APIRouter, Query, Request

from bikeshare.api.middleware import limiter
from bikeshare.api.schemas import CostBreakdownResponse, EstimateResponse, PlanResponse
from bikeshare.config import settings
from bikeshare.domain.pricing import (
    PREMIUM,
    PRICING_PLANS,
    PricingEngine,
    RideRequest,
    check_ride_request,
    format_price,
    get_plan,
    pricing_explanation,
)

router = APIRouter(prefix="/pricing", tags=["pricing"])


@router.get("/plans", response_model=list[PlanResponse], summary="List pricing plans")
@limiter.limit(settings.rate_limit)
async def list_plans(request: Request):
    return [
        PlanResponse(
            key=key,
            name=plan.name,
            base_rate=plan.base_rate,
            per_minute_rate=plan.per_minute_rate,
            free_minutes=plan.free_minutes,
            max_free_rides_per_day=plan.max_free_rides_per_day,
            explanation=pricing_explanation(plan),
        )
        for key, plan in PRICING_PLANS.items()
    ]


@router.get("/estimate", response_model=EstimateResponse, summary="Estimate a ride's cost")
@limiter.limit(settings.rate_limit)
async def estimate(
    request: Request,
    duration_minutes: float = Query(..., alias="durationMinutes"),
    plan: str = Query("STANDARD"),
    rides_completed_today: int = Query(0, alias="ridesCompletedToday"),
):
    pricing_plan = get_plan(plan)
    ride = RideRequest(
        duration_minutes=duration_minutes,
        is_premium_user=pricing_plan is PREMIUM,
        rides_completed_today=rides_completed_today,
    )
    check_ride_request(ride)
    breakdown = PricingEngine.compute_cost(ride, pricing_plan)
    return EstimateResponse(
        plan=pricing_plan.name,
        duration_minutes=duration_minutes,
        breakdown=CostBreakdownResponse.model_validate(breakdown),
        formatted_total=format_price(breakdown.total_cost),
    )
