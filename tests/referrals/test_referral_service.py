"""Referral bookkeeping across both storage backends."""

from __future__ import annotations

from decimal import Decimal

import pytest

from fmbn.errors import NotFoundError, ValidationError
from fmbn.policy import BusinessPolicy
from fmbn.referrals.service import adjust_stats, convert_referral, mark_referral_paid, track_referral
from fmbn.storage import Storage


@pytest.fixture
def policy() -> BusinessPolicy:
    return BusinessPolicy()


async def _referrer(storage: Storage) -> tuple[int, str]:
    user = await storage.create_user("referrer", "referrer@example.com")
    code = await storage.create_referral_code(user.id)
    return user.id, code.code


async def test_track_creates_user_and_pending_referral(any_storage: Storage) -> None:
    referrer_id, code = await _referrer(any_storage)
    referral = await track_referral(any_storage, code, "newbie@example.com", plan="starter")

    referee = await any_storage.get_user_by_email("newbie@example.com")
    assert referee is not None
    assert referee.username == "newbie"
    assert referee.plan == "starter"
    assert referral.status == "pending"
    assert (referral.referrer_id, referral.referee_id) == (referrer_id, referee.id)
    assert (await any_storage.get_referral_stats(referrer_id)).total_referrals == 1


async def test_track_increments_existing_total(any_storage: Storage) -> None:
    referrer_id, code = await _referrer(any_storage)
    await track_referral(any_storage, code, "one@example.com")
    await track_referral(any_storage, code, "two@example.com")
    assert (await any_storage.get_referral_stats(referrer_id)).total_referrals == 2


async def test_track_invalid_code(any_storage: Storage) -> None:
    with pytest.raises(NotFoundError, match="Invalid referral code"):
        await track_referral(any_storage, "NOPE", "newbie@example.com")


async def test_track_existing_email_rejected(any_storage: Storage) -> None:
    _, code = await _referrer(any_storage)
    with pytest.raises(ValidationError):
        await track_referral(any_storage, code, "referrer@example.com")


async def test_track_username_collision_gets_suffix(any_storage: Storage) -> None:
    _, code = await _referrer(any_storage)
    await any_storage.create_user("newbie", "someone-else@example.com")
    await track_referral(any_storage, code, "newbie@example.org")
    referee = await any_storage.get_user_by_email("newbie@example.org")
    assert referee.username.startswith("newbie_")


async def test_convert_then_pay(any_storage: Storage, policy: BusinessPolicy) -> None:
    referrer_id, code = await _referrer(any_storage)
    referral = await track_referral(any_storage, code, "newbie@example.com")

    referral, commission = await convert_referral(any_storage, policy, referral.id, Decimal("100"))
    assert commission == Decimal("30.00")
    assert referral.status == "converted"
    assert referral.commission_amount == Decimal("30.00")

    stats = await any_storage.get_referral_stats(referrer_id)
    assert stats.converted_referrals == 1
    assert stats.pending_commissions == Decimal("30.00")
    assert stats.total_commissions == Decimal("30.00")
    assert stats.paid_commissions == Decimal("0.00")

    referral, payout = await mark_referral_paid(any_storage, referral.id, "paypal")
    assert referral.status == "paid"
    assert payout.amount == Decimal("30.00")
    assert payout.user_id == referrer_id

    stats = await any_storage.get_referral_stats(referrer_id)
    assert stats.pending_commissions == Decimal("0.00")
    assert stats.paid_commissions == Decimal("30.00")
    assert stats.total_commissions == Decimal("30.00")


async def test_convert_twice_rejected(any_storage: Storage, policy: BusinessPolicy) -> None:
    _, code = await _referrer(any_storage)
    referral = await track_referral(any_storage, code, "newbie@example.com")
    await convert_referral(any_storage, policy, referral.id, 50)
    with pytest.raises(ValidationError):
        await convert_referral(any_storage, policy, referral.id, 50)


async def test_pay_pending_referral_rejected(any_storage: Storage) -> None:
    referrer_id, code = await _referrer(any_storage)
    referral = await track_referral(any_storage, code, "newbie@example.com")
    with pytest.raises(ValidationError):
        await mark_referral_paid(any_storage, referral.id)
    assert await any_storage.get_user_payouts(referrer_id) == []


async def test_convert_missing_referral(any_storage: Storage, policy: BusinessPolicy) -> None:
    with pytest.raises(NotFoundError):
        await convert_referral(any_storage, policy, 404, 10)


async def test_adjust_stats_creates_row(any_storage: Storage) -> None:
    user = await any_storage.create_user("solo", "solo@example.com")
    stats = await adjust_stats(any_storage, user.id, total_referrals=2, total_commissions=Decimal("1.50"))
    assert stats.total_referrals == 2
    assert stats.total_commissions == Decimal("1.50")
