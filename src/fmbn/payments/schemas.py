from __future__ import annotations

from decimal import Decimal

from pydantic import EmailStr, Field

from fmbn.schemas import CamelModel


class PaymentNotification(CamelModel):
    """A completed payment reported by a payment provider."""

    transaction_id: str = Field(..., min_length=1, max_length=128)
    user_email: EmailStr
    amount: Decimal = Field(..., gt=0, max_digits=10, decimal_places=2)
    currency: str = Field("USD", min_length=3, max_length=3)
    subscription_plan: str
    payment_method: str = Field(..., min_length=1, max_length=50)
    referral_code: str | None = Field(None, max_length=50)


class PaymentAutomationResponse(CamelModel):
    success: bool = True
    message: str = "Payment processed and account upgraded"
    user_id: int
    upgrade_applied: str
    referral_processed: bool
    commission_generated: Decimal
    transaction_id: str
