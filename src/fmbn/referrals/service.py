"""Referral bookkeeping: tracking sign-ups, conversions and payouts.

A referral moves ``pending -> converted -> paid``. Converting credits the
commission to the referrer's pending and total commissions; paying it out
moves the amount from pending to paid.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any

import structlog

from fmbn.db.models import Referral, ReferralPayout, ReferralStats
from fmbn.errors import NotFoundError, ValidationError
from fmbn.policy import BusinessPolicy, money
from fmbn.storage import Storage
from fmbn.storage.base import utcnow
from fmbn.users.service import find_or_create_user

logger = structlog.get_logger()


async def adjust_stats(storage: Storage, user_id: int, **deltas: int | Decimal) -> ReferralStats:
    """Add ``deltas`` to the referrer's counters, creating the row if needed."""
    current = await storage.get_referral_stats(user_id)
    changes: dict[str, Any] = {}
    for key, delta in deltas.items():
        base = getattr(current, key) if current is not None else 0
        changes[key] = base + delta
    return await storage.update_referral_stats(user_id, **changes)


async def track_referral(storage: Storage, code: str, email: str, plan: str = "free") -> Referral:
    """Register a referred sign-up: new user plus a pending referral."""
    referral_code = await storage.get_referral_code_by_code(code)
    if referral_code is None:
        raise NotFoundError("Invalid referral code")
    referee, created = await find_or_create_user(storage, email, plan)
    if not created:
        raise ValidationError("User already registered", email=email)

    referral = await storage.create_referral(referral_code.user_id, referee.id, referral_code.code)
    await adjust_stats(storage, referral_code.user_id, total_referrals=1)
    logger.info("referral_tracked", referral_id=referral.id, referrer_id=referral_code.user_id)
    return referral


async def convert_referral(
    storage: Storage,
    policy: BusinessPolicy,
    referral_id: int,
    amount: Decimal | int | float | str,
) -> tuple[Referral, Decimal]:
    """Mark a referral converted after a purchase of ``amount``; returns it with the commission."""
    if await storage.get_referral(referral_id) is None:
        raise NotFoundError(f"Referral {referral_id} not found")
    if money(amount) <= 0:
        raise ValidationError("Amount must be positive")
    commission = policy.commission_for(amount)
    referral = await storage.update_referral_status(
        referral_id, "converted", conversion_date=utcnow(), commission_amount=commission
    )
    await adjust_stats(
        storage,
        referral.referrer_id,
        converted_referrals=1,
        pending_commissions=commission,
        total_commissions=commission,
    )
    logger.info("referral_converted", referral_id=referral_id, commission=str(commission))
    return referral, commission


async def mark_referral_paid(
    storage: Storage,
    referral_id: int,
    payment_method: str | None = None,
    payment_details: dict[str, Any] | None = None,
) -> tuple[Referral, ReferralPayout]:
    """Pay out a converted referral's commission."""
    referral = await storage.get_referral(referral_id)
    if referral is None:
        raise NotFoundError(f"Referral {referral_id} not found")
    if referral.status != "converted" or referral.commission_amount is None:
        raise ValidationError(f"Referral cannot move from '{referral.status}' to 'paid'")

    commission = referral.commission_amount
    referral = await storage.update_referral_status(referral_id, "paid")
    payout = await storage.create_payout(referral.referrer_id, commission, payment_method, payment_details)
    await adjust_stats(
        storage,
        referral.referrer_id,
        pending_commissions=-commission,
        paid_commissions=commission,
    )
    logger.info("referral_paid", referral_id=referral_id, payout_id=payout.id, amount=str(commission))
    return referral, payout
