"""Business policy: quotas, commission and display limits."""

from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal

from fmbn.config import Settings
from fmbn.policy import BusinessPolicy, is_paid_plan, is_premium_plan, money

JAN_15 = datetime(2025, 1, 15, 12, tzinfo=timezone.utc)
MAR_15 = datetime(2025, 3, 15, 12, tzinfo=timezone.utc)


class TestMonthlyLimit:
    def test_free_plan_outside_window(self) -> None:
        assert BusinessPolicy().monthly_limit("free", MAR_15) == 10

    def test_free_plan_inside_window(self) -> None:
        assert BusinessPolicy().monthly_limit("free", JAN_15) == 20

    def test_window_edges_inclusive(self) -> None:
        policy = BusinessPolicy()
        assert policy.in_promotional_window(datetime(2025, 1, 1, tzinfo=timezone.utc))
        assert policy.in_promotional_window(datetime(2025, 1, 31, 23, 59, tzinfo=timezone.utc))
        assert not policy.in_promotional_window(datetime(2025, 2, 1, tzinfo=timezone.utc))

    def test_no_window(self) -> None:
        policy = BusinessPolicy(promotional_window=None)
        assert policy.monthly_limit("free", JAN_15) == 10

    def test_paid_plans_unlimited(self) -> None:
        policy = BusinessPolicy()
        for plan in ("starter", "premium", "pro", "enterprise"):
            assert policy.monthly_limit(plan, MAR_15) is None


class TestCommission:
    def test_thirty_percent(self) -> None:
        assert BusinessPolicy().commission_for("100") == Decimal("30.00")

    def test_rounds_to_cents(self) -> None:
        assert BusinessPolicy().commission_for(Decimal("19.99")) == Decimal("6.00")

    def test_custom_rate(self) -> None:
        assert BusinessPolicy(referral_commission_rate=Decimal("0.10")).commission_for(55) == Decimal("5.50")


def test_display_limit() -> None:
    policy = BusinessPolicy()
    assert policy.display_limit("free") == 10
    assert policy.display_limit("premium") == 50
    assert policy.display_limit("pro") == 999


def test_from_settings() -> None:
    settings = Settings(
        _env_file=None,
        free_monthly_limit=3,
        promotional_monthly_limit=6,
        promotional_window_start=date(2026, 6, 1),
        promotional_window_end=date(2026, 6, 30),
        referral_commission_rate=Decimal("0.25"),
        withdrawal_fee=Decimal("1"),
    )
    policy = BusinessPolicy.from_settings(settings)
    assert policy.free_monthly_limit == 3
    assert policy.promotional_window == (date(2026, 6, 1), date(2026, 6, 30))
    assert policy.withdrawal_fee == Decimal("1.00")
    assert policy.commission_for(100) == Decimal("25.00")
    assert policy.display_limit("free") == 3


def test_plan_tiers() -> None:
    assert not is_paid_plan("free")
    assert is_paid_plan("starter")
    assert not is_premium_plan("starter")
    assert is_premium_plan("premium")


def test_money() -> None:
    assert money("2.5") == Decimal("2.50")
    assert money(0.1 + 0.2) == Decimal("0.30")
    assert money(Decimal("1.005")) == Decimal("1.01")
