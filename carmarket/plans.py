"""
Subscription plan tiers.

Kept free of any service or route imports so both the listing service
(listing limits at create) and the subscription sweep (downgrade target)
can import it directly.
"""

from __future__ import annotations

from dataclasses import dataclass

UNLIMITED = -1
FREE_PLAN = "free"


@dataclass(frozen=True)
class Plan:
    name: str
    max_listings: int
    boost_credits: int
    duration_days: int

    @property
    def is_unlimited(self) -> bool:
        return self.max_listings == UNLIMITED


SUBSCRIPTION_PLANS: dict[str, Plan] = {
    "free": Plan(name="free", max_listings=UNLIMITED, boost_credits=0, duration_days=0),
    "basic": Plan(name="basic", max_listings=UNLIMITED, boost_credits=5, duration_days=30),
    "premium": Plan(name="premium", max_listings=UNLIMITED, boost_credits=20, duration_days=30),
    "dealer": Plan(name="dealer", max_listings=UNLIMITED, boost_credits=50, duration_days=30),
}


def resolve_plan(name: str | None, is_active: bool = True) -> Plan:
    """
    Look up the effective plan for an owner.

    Inactive subscriptions and unknown plan names resolve to the free tier.

    Args:
        name: Stored plan name
        is_active: Whether the subscription is currently active

    Returns:
        Plan: The plan whose limits apply
    """
    if not is_active or not name:
        return SUBSCRIPTION_PLANS[FREE_PLAN]
    return SUBSCRIPTION_PLANS.get(name, SUBSCRIPTION_PLANS[FREE_PLAN])
