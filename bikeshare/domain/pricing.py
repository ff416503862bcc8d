"""
Ride Pricing Engine  (Strategy Pattern)
=======================================

Formula
-------
Free ride (premium only):
    premium AND rides_completed_today < max_free_rides_per_day
    AND duration <= free_minutes  ->  total 0, discount reports waived base rate

Metered ride:
    chargeable = max(0, duration - free_minutes)
    subtotal   = base_rate + chargeable x per_minute_rate
    discount   = min(2.00, subtotal x 10 %)   (premium only)
    total      = max(0, subtotal - discount)

All arithmetic stays at full float precision; amounts are rounded to cents
only by ``format_price`` and the API response schemas.

Complexity: O(1) per price calculation.
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from .errors import InvalidRequest

LOYALTY_DISCOUNT_RATE = 0.10
LOYALTY_DISCOUNT_CAP = 2.00


# ── Value objects ─────────────────────────────────────────────────────


@dataclass(frozen=True)
class PricingPlan:
    name: str
    base_rate: float
    per_minute_rate: float
    free_minutes: int
    max_free_rides_per_day: int


@dataclass(frozen=True)
class RideRequest:
    duration_minutes: float
    distance_km: float = 0.0  # carried but not priced
    is_premium_user: bool = False
    rides_completed_today: int = 0


@dataclass(frozen=True)
class CostBreakdown:
    base_rate: float
    minutes_cost: float
    discount: float
    total_cost: float


STANDARD = PricingPlan(
    name="Standard",
    base_rate=1.00,
    per_minute_rate=0.15,
    free_minutes=5,
    max_free_rides_per_day=0,
)

PREMIUM = PricingPlan(
    name="Premium",
    base_rate=0.50,
    per_minute_rate=0.10,
    free_minutes=60,
    max_free_rides_per_day=2,
)

PRICING_PLANS: dict[str, PricingPlan] = {"STANDARD": STANDARD, "PREMIUM": PREMIUM}


def plan_for(is_premium_user: bool) -> PricingPlan:
    return PREMIUM if is_premium_user else STANDARD


def get_plan(name: str) -> PricingPlan:
    """Look up a plan by its key (case-insensitive)."""
    plan = PRICING_PLANS.get(name.strip().upper())
    if plan is None:
        raise InvalidRequest(f"Unknown pricing plan: {name!r}")
    return plan


def check_ride_request(request: RideRequest) -> None:
    """Reject inputs the engine is not defined for.  Call before pricing."""
    if not math.isfinite(request.duration_minutes) or request.duration_minutes < 0:
        raise InvalidRequest("durationMinutes must be a finite, non-negative number")
    if not math.isfinite(request.distance_km) or request.distance_km < 0:
        raise InvalidRequest("distanceKm must be a finite, non-negative number")
    if request.rides_completed_today < 0:
        raise InvalidRequest("ridesCompletedToday must be non-negative")


# ── Strategy hierarchy ────────────────────────────────────────────────


class PricingStrategy(ABC):
    @abstractmethod
    def calculate(
        self, request: RideRequest, plan: PricingPlan
    ) -> Optional[CostBreakdown]: ...


class FreeRidePricing(PricingStrategy):
    """Waives the whole ride while the premium daily quota lasts."""

    def calculate(
        self, request: RideRequest, plan: PricingPlan
    ) -> Optional[CostBreakdown]:
        if (
            request.is_premium_user
            and request.rides_completed_today < plan.max_free_rides_per_day
            and request.duration_minutes <= plan.free_minutes
        ):
            # discount reports the waived base rate for display only
            return CostBreakdown(
                base_rate=0.0,
                minutes_cost=0.0,
                discount=plan.base_rate,
                total_cost=0.0,
            )
        return None


class MeteredPricing(PricingStrategy):
    """Base rate plus per-minute cost, with the premium loyalty discount."""

    def calculate(
        self, request: RideRequest, plan: PricingPlan
    ) -> Optional[CostBreakdown]:
        chargeable = max(0.0, request.duration_minutes - plan.free_minutes)
        minutes_cost = chargeable * plan.per_minute_rate
        subtotal = plan.base_rate + minutes_cost
        discount = (
            min(LOYALTY_DISCOUNT_CAP, subtotal * LOYALTY_DISCOUNT_RATE)
            if request.is_premium_user
            else 0.0
        )
        return CostBreakdown(
            base_rate=plan.base_rate,
            minutes_cost=minutes_cost,
            discount=discount,
            total_cost=max(0.0, subtotal - discount),
        )


# ── Engine facade ─────────────────────────────────────────────────────


class PricingEngine:
    """High-level API used by the state machine and the API layer.

    Stateless: strategies are tried in order and the first breakdown wins.
    """

    STRATEGIES: tuple[PricingStrategy, ...] = (FreeRidePricing(), MeteredPricing())

    @classmethod
    def compute_cost(cls, request: RideRequest, plan: PricingPlan) -> CostBreakdown:
        for strategy in cls.STRATEGIES:
            breakdown = strategy.calculate(request, plan)
            if breakdown is not None:
                return breakdown
        raise AssertionError("MeteredPricing always prices a ride")

    @classmethod
    def estimate(
        cls,
        duration_minutes: float,
        is_premium_user: bool,
        rides_completed_today: int = 0,
    ) -> CostBreakdown:
        request = RideRequest(
            duration_minutes=duration_minutes,
            is_premium_user=is_premium_user,
            rides_completed_today=rides_completed_today,
        )
        return cls.compute_cost(request, plan_for(is_premium_user))


# ── Display helpers ───────────────────────────────────────────────────


def format_price(amount: float) -> str:
    return f"${amount:.2f}"


def pricing_explanation(plan: PricingPlan) -> str:
    explanation = (
        f"{plan.name} Plan: {format_price(plan.base_rate)} base rate includes "
        f"first {plan.free_minutes} minutes. "
        f"{format_price(plan.per_minute_rate)}/minute after that."
    )
    if plan.max_free_rides_per_day:
        explanation += (
            f" First {plan.max_free_rides_per_day} rides under "
            f"{plan.free_minutes} minutes are free each day. "
            f"10% discount on other rides (up to {format_price(LOYALTY_DISCOUNT_CAP)})."
        )
    return explanation
