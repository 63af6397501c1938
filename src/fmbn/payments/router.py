"""Payment provider callbacks."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from fmbn.dependencies import get_policy, get_storage
from fmbn.payments.schemas import PaymentAutomationResponse, PaymentNotification
from fmbn.payments.service import process_payment
from fmbn.policy import BusinessPolicy
from fmbn.storage import Storage

router = APIRouter(prefix="/api", tags=["Payments"])


@router.post("/payment-automation", response_model=PaymentAutomationResponse)
async def payment_automation(
    body: PaymentNotification,
    storage: Storage = Depends(get_storage),  # noqa: B008
    policy: BusinessPolicy = Depends(get_policy),  # noqa: B008
) -> PaymentAutomationResponse:
    result = await process_payment(
        storage,
        policy,
        transaction_id=body.transaction_id,
        email=str(body.user_email),
        amount=body.amount,
        plan=body.subscription_plan,
        payment_method=body.payment_method,
        currency=body.currency.upper(),
        referral_code=body.referral_code,
    )
    return PaymentAutomationResponse(
        user_id=result.user_id,
        upgrade_applied=result.plan,
        referral_processed=result.referral_processed,
        commission_generated=result.commission,
        transaction_id=body.transaction_id,
    )
