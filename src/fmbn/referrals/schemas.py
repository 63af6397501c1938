"""Referral program request/response shapes. Money is a 2dp decimal string."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import EmailStr, Field

from fmbn.schemas import CamelModel


class ReferralCodeResponse(CamelModel):
    id: int
    user_id: int
    code: str
    is_active: bool
    created_at: datetime


class ReferralResponse(CamelModel):
    id: int
    referrer_id: int
    referee_id: int
    referral_code: str
    status: str
    conversion_date: datetime | None
    commission_amount: Decimal | None
    currency: str
    created_at: datetime


class ReferralStatsResponse(CamelModel):
    total_referrals: int = 0
    converted_referrals: int = 0
    total_commissions: Decimal = Decimal("0.00")
    pending_commissions: Decimal = Decimal("0.00")
    paid_commissions: Decimal = Decimal("0.00")
    currency: str = "USD"
    country: str | None = None


class PayoutResponse(CamelModel):
    id: int
    user_id: int
    amount: Decimal
    currency: str
    payment_method: str | None
    status: str
    transaction_id: str | None
    processed_at: datetime | None
    created_at: datetime


class ReferralDashboard(CamelModel):
    stats: ReferralStatsResponse
    referrals: list[ReferralResponse]
    payouts: list[PayoutResponse]


class TrackReferralRequest(CamelModel):
    referral_code: str = Field(..., min_length=1, max_length=50)
    new_user_email: EmailStr


class TrackReferralResponse(CamelModel):
    referral: ReferralResponse
    message: str = "Referral tracked successfully"


class ConvertReferralRequest(CamelModel):
    referral_id: int
    plan: str | None = None
    amount: Decimal = Field(..., gt=0, max_digits=10, decimal_places=2)


class ConvertReferralResponse(CamelModel):
    message: str = "Referral converted successfully"
    commission: Decimal
    referral: ReferralResponse


class PayoutRequest(CamelModel):
    payment_method: str | None = Field(None, max_length=50)
    payment_details: dict[str, Any] | None = None


class PayoutResult(CamelModel):
    message: str = "Commission paid out"
    referral: ReferralResponse
    payout: PayoutResponse
