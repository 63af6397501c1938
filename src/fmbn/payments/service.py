"""Payment automation: record a completed payment and apply its effects.

The account is found or created by email and moved to the purchased plan.
A valid referral code on the payment produces an already converted
referral with its commission.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

import structlog

from fmbn.errors import ConflictError
from fmbn.policy import BusinessPolicy
from fmbn.referrals.service import adjust_stats
from fmbn.storage import Storage
from fmbn.storage.base import check_plan, utcnow
from fmbn.users.service import find_or_create_user

logger = structlog.get_logger()


@dataclass
class PaymentResult:
    user_id: int
    plan: str
    referral_processed: bool
    commission: Decimal


async def process_payment(
    storage: Storage,
    policy: BusinessPolicy,
    *,
    transaction_id: str,
    email: str,
    amount: Decimal,
    plan: str,
    payment_method: str,
    currency: str = "USD",
    referral_code: str | None = None,
) -> PaymentResult:
    check_plan(plan)
    if await storage.get_payment_transaction(transaction_id) is not None:
        raise ConflictError("Payment already processed", transactionId=transaction_id)

    user, created = await find_or_create_user(storage, email, plan)
    if not created and user.plan != plan:
        user = await storage.update_user_plan(user.id, plan)

    await storage.record_payment_transaction(
        user.id,
        transaction_id,
        amount,
        payment_method,
        plan,
        referral_code=referral_code,
        currency=currency,
    )

    commission = Decimal("0.00")
    referral_processed = False
    code = await storage.get_referral_code_by_code(referral_code) if referral_code else None
    if code is not None and code.user_id != user.id:
        commission = policy.commission_for(amount)
        referral = await storage.create_referral(code.user_id, user.id, code.code)
        await storage.update_referral_status(
            referral.id, "converted", conversion_date=utcnow(), commission_amount=commission
        )
        await adjust_stats(
            storage,
            code.user_id,
            total_referrals=1,
            converted_referrals=1,
            total_commissions=commission,
            pending_commissions=commission,
        )
        referral_processed = True
    elif referral_code:
        logger.warning("payment_referral_ignored", transaction_id=transaction_id, referral_code=referral_code)

    logger.info(
        "payment_processed",
        transaction_id=transaction_id,
        user_id=user.id,
        plan=plan,
        user_created=created,
        commission=str(commission),
    )
    return PaymentResult(
        user_id=user.id, plan=plan, referral_processed=referral_processed, commission=commission
    )
