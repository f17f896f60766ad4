"""
Unit tests for runtime configuration and subscription plans.
"""

from __future__ import annotations

import pytest

from carmarket.config import DEFAULT_AUTO_DELETE_DAYS, get_auto_delete_days
from carmarket.plans import SUBSCRIPTION_PLANS, resolve_plan


@pytest.mark.unit
@pytest.mark.parametrize("raw", [None, "", "abc", "0", "-4", "  "])
def test_auto_delete_days_falls_back_to_default(
    monkeypatch: pytest.MonkeyPatch, raw: str | None
) -> None:
    """Test that missing, non-numeric or non-positive values use 30 days."""
    if raw is None:
        monkeypatch.delenv("SOLD_LISTING_AUTO_DELETE_DAYS", raising=False)
    else:
        monkeypatch.setenv("SOLD_LISTING_AUTO_DELETE_DAYS", raw)

    assert get_auto_delete_days() == DEFAULT_AUTO_DELETE_DAYS == 30


@pytest.mark.unit
def test_auto_delete_days_reads_environment_each_call(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SOLD_LISTING_AUTO_DELETE_DAYS", "14")
    assert get_auto_delete_days() == 14

    monkeypatch.setenv("SOLD_LISTING_AUTO_DELETE_DAYS", " 45 ")
    assert get_auto_delete_days() == 45


@pytest.mark.unit
def test_resolve_plan() -> None:
    """Test that inactive or unknown subscriptions resolve to the free plan."""
    assert resolve_plan("premium").boost_credits == 20
    assert resolve_plan("premium", is_active=False).name == "free"
    assert resolve_plan("platinum").name == "free"
    assert resolve_plan(None).name == "free"


@pytest.mark.unit
def test_all_plans_are_unlimited() -> None:
    assert all(plan.is_unlimited for plan in SUBSCRIPTION_PLANS.values())
    assert SUBSCRIPTION_PLANS["dealer"].boost_credits == 50
