"""Business policy: usage quotas, commission rate and withdrawal fee.

Built once from settings and injected into routes and services so policy
changes never touch business logic.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal

from fmbn.config import Settings

CENTS = Decimal("0.01")

PAID_PLANS = frozenset({"starter", "core", "premium", "pro", "scale", "enterprise"})
PREMIUM_PLANS = frozenset({"premium", "pro", "scale", "enterprise"})


def money(value: Decimal | int | float | str) -> Decimal:
    """Coerce to a two-place Decimal."""
    return Decimal(str(value)).quantize(CENTS, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class BusinessPolicy:
    referral_commission_rate: Decimal = Decimal("0.30")
    free_monthly_limit: int = 10
    promotional_monthly_limit: int = 20
    promotional_window: tuple[date, date] | None = (date(2025, 1, 1), date(2025, 1, 31))
    withdrawal_fee: Decimal = Decimal("2.50")
    usage_limits: dict[str, int] = field(default_factory=lambda: {"free": 10, "premium": 50})
    unlimited_display_limit: int = 999
    currency: str = "USD"

    @classmethod
    def from_settings(cls, settings: Settings) -> BusinessPolicy:
        window = None
        if settings.promotional_window_start and settings.promotional_window_end:
            window = (settings.promotional_window_start, settings.promotional_window_end)
        return cls(
            referral_commission_rate=settings.referral_commission_rate,
            free_monthly_limit=settings.free_monthly_limit,
            promotional_monthly_limit=settings.promotional_monthly_limit,
            promotional_window=window,
            withdrawal_fee=money(settings.withdrawal_fee),
            usage_limits={"free": settings.free_monthly_limit, "premium": settings.premium_monthly_limit},
            unlimited_display_limit=settings.unlimited_display_limit,
            currency=settings.default_currency,
        )

    def in_promotional_window(self, now: datetime) -> bool:
        if self.promotional_window is None:
            return False
        start, end = self.promotional_window
        return start <= now.date() <= end

    def monthly_limit(self, plan: str, now: datetime) -> int | None:
        """Generation quota for ``plan`` this month. ``None`` means unlimited."""
        if plan != "free":
            return None
        if self.in_promotional_window(now):
            return self.promotional_monthly_limit
        return self.free_monthly_limit

    def display_limit(self, plan: str) -> int:
        """Usage limit reported on the user endpoint."""
        return self.usage_limits.get(plan, self.unlimited_display_limit)

    def commission_for(self, amount: Decimal | int | float | str) -> Decimal:
        return money(money(amount) * self.referral_commission_rate)


def is_paid_plan(plan: str) -> bool:
    return plan in PAID_PLANS


def is_premium_plan(plan: str) -> bool:
    return plan in PREMIUM_PLANS
