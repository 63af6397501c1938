"""Behavior shared by every storage backend."""

from __future__ import annotations

from datetime import timedelta
from decimal import Decimal

import pytest

from fmbn.errors import ConflictError, NotFoundError, ValidationError
from fmbn.storage import Storage
from fmbn.storage.base import utcnow


class TestUsers:
    async def test_create_and_lookup(self, any_storage: Storage) -> None:
        user = await any_storage.create_user("alice", "alice@example.com")
        assert user.id > 0
        assert user.plan == "free"
        assert user.daily_usage == 0
        assert (await any_storage.get_user(user.id)).username == "alice"
        assert (await any_storage.get_user_by_email("alice@example.com")).id == user.id
        assert (await any_storage.get_user_by_username("alice")).id == user.id

    async def test_missing_user_reads_none(self, any_storage: Storage) -> None:
        assert await any_storage.get_user(999) is None
        assert await any_storage.get_user_by_email("nobody@example.com") is None

    async def test_duplicate_email_conflicts(self, any_storage: Storage) -> None:
        await any_storage.create_user("alice", "alice@example.com")
        with pytest.raises(ConflictError):
            await any_storage.create_user("alice2", "alice@example.com")

    async def test_duplicate_username_conflicts(self, any_storage: Storage) -> None:
        await any_storage.create_user("alice", "alice@example.com")
        with pytest.raises(ConflictError):
            await any_storage.create_user("alice", "other@example.com")

    async def test_unknown_plan_rejected(self, any_storage: Storage) -> None:
        with pytest.raises(ValidationError):
            await any_storage.create_user("alice", "alice@example.com", plan="platinum")

    async def test_usage_update_and_reset(self, any_storage: Storage) -> None:
        user = await any_storage.create_user("alice", "alice@example.com")
        user = await any_storage.update_user_usage(user.id, 3)
        assert user.daily_usage == 3
        before = user.last_usage_reset
        user = await any_storage.reset_daily_usage(user.id)
        assert user.daily_usage == 0
        assert user.last_usage_reset >= before

    async def test_mutating_missing_user_raises(self, any_storage: Storage) -> None:
        with pytest.raises(NotFoundError):
            await any_storage.update_user_usage(42, 1)
        with pytest.raises(NotFoundError):
            await any_storage.update_user_plan(42, "premium")

    async def test_premium_feature_counter(self, any_storage: Storage) -> None:
        user = await any_storage.create_user("alice", "alice@example.com")
        user = await any_storage.update_premium_feature_usage(user.id, "brand_analysis")
        user = await any_storage.update_premium_feature_usage(user.id, "brand_analysis")
        assert user.brand_analysis_usage == 2
        with pytest.raises(ValidationError):
            await any_storage.update_premium_feature_usage(user.id, "teleport")

    async def test_plan_and_payment_customer(self, any_storage: Storage) -> None:
        user = await any_storage.create_user("alice", "alice@example.com")
        user = await any_storage.update_user_plan(user.id, "premium")
        assert user.plan == "premium"
        user = await any_storage.update_payment_customer(user.id, "cus_1", "sub_1")
        assert (user.payment_customer_id, user.payment_subscription_id) == ("cus_1", "sub_1")


class TestNames:
    async def test_favorites_and_history(self, any_storage: Storage) -> None:
        user = await any_storage.create_user("alice", "alice@example.com")
        first = await any_storage.create_generated_name(user.id, "BrewLab", domains={".com": {"available": True}})
        second = await any_storage.create_generated_name(user.id, "Bean Hub")
        names = await any_storage.get_user_generated_names(user.id)
        assert [n.id for n in names] == [second.id, first.id]
        assert names[1].domains == {".com": {"available": True}}

        toggled = await any_storage.toggle_favorite(user.id, first.id)
        assert toggled is not None and toggled.is_favorite
        assert [n.id for n in await any_storage.get_user_favorites(user.id)] == [first.id]
        toggled = await any_storage.toggle_favorite(user.id, first.id)
        assert not toggled.is_favorite
        assert await any_storage.get_user_favorites(user.id) == []

        await any_storage.add_search_history(user.id, "coffee shop", industry="food")
        history = await any_storage.get_user_search_history(user.id)
        assert [h.query for h in history] == ["coffee shop"]

    async def test_toggle_other_users_name_is_none(self, any_storage: Storage) -> None:
        alice = await any_storage.create_user("alice", "alice@example.com")
        bob = await any_storage.create_user("bob", "bob@example.com")
        name = await any_storage.create_generated_name(alice.id, "BrewLab")
        assert await any_storage.toggle_favorite(bob.id, name.id) is None
        assert await any_storage.toggle_favorite(alice.id, 999) is None


class TestProducts:
    async def test_purchase_and_download_counters(self, any_storage: Storage) -> None:
        user = await any_storage.create_user("alice", "alice@example.com")
        product = await any_storage.create_digital_product(
            title="Guide", description="A guide", price=2500, category="branding",
            file_name="guide.pdf", file_path="/products/guide.pdf", file_size=1024,
        )
        assert [p.id for p in await any_storage.get_all_digital_products()] == [product.id]

        purchase = await any_storage.create_purchase(user.id, product.id, 2500, "demo")
        assert (await any_storage.get_purchase(user.id, product.id)).id == purchase.id
        assert await any_storage.get_purchase(user.id, product.id + 1) is None

        purchase = await any_storage.increment_download_count(purchase.id)
        assert purchase.download_count == 1
        assert purchase.last_download_at is not None
        assert (await any_storage.get_digital_product(product.id)).download_count == 1

    async def test_inactive_products_hidden(self, any_storage: Storage) -> None:
        product = await any_storage.create_digital_product(
            title="Old", description="x", price=100, category="legal",
            file_name="old.zip", file_path="/old.zip", file_size=1,
        )
        await any_storage.update_digital_product(product.id, is_active=False)
        assert await any_storage.get_all_digital_products() == []
        with pytest.raises(ValidationError):
            await any_storage.update_digital_product(product.id, colour="red")


class TestProfilesAndFeedback:
    async def test_profile_lifecycle(self, any_storage: Storage) -> None:
        user = await any_storage.create_user("alice", "alice@example.com")
        assert await any_storage.get_user_profile(user.id) is None
        profile = await any_storage.create_user_profile(user.id, display_name="Alice", interests=["retail"])
        assert profile.interests == ["retail"]
        assert profile.is_public is True
        with pytest.raises(ConflictError):
            await any_storage.create_user_profile(user.id, display_name="Again")
        profile = await any_storage.update_user_profile(user.id, bio="Shop owner")
        assert (profile.display_name, profile.bio) == ("Alice", "Shop owner")

    async def test_feedback(self, any_storage: Storage) -> None:
        user = await any_storage.create_user("alice", "alice@example.com")
        await any_storage.create_user_feedback(5, "Great", user_id=user.id)
        await any_storage.create_user_feedback(3, "Anonymous note", is_anonymous=True)
        assert len(await any_storage.get_user_feedback(user.id)) == 1
        assert len(await any_storage.get_all_feedback()) == 2
        with pytest.raises(ValidationError):
            await any_storage.create_user_feedback(6)


class TestReferrals:
    async def test_code_is_idempotent(self, any_storage: Storage) -> None:
        user = await any_storage.create_user("alice", "alice@example.com")
        first = await any_storage.create_referral_code(user.id)
        second = await any_storage.create_referral_code(user.id)
        assert first.code == second.code
        assert first.code.startswith(f"REF{user.id}")
        assert (await any_storage.get_referral_code_by_code(first.code)).user_id == user.id

    async def test_state_machine_forward_only(self, any_storage: Storage) -> None:
        alice = await any_storage.create_user("alice", "alice@example.com")
        bob = await any_storage.create_user("bob", "bob@example.com")
        referral = await any_storage.create_referral(alice.id, bob.id, "REF1")
        assert referral.status == "pending"

        with pytest.raises(ValidationError):
            await any_storage.update_referral_status(referral.id, "paid")
        with pytest.raises(ValidationError):
            await any_storage.update_referral_status(referral.id, "converted")

        referral = await any_storage.update_referral_status(
            referral.id, "converted", commission_amount=Decimal("30.00")
        )
        assert referral.status == "converted"
        assert referral.conversion_date is not None
        assert referral.commission_amount == Decimal("30.00")

        with pytest.raises(ValidationError):
            await any_storage.update_referral_status(referral.id, "pending")
        referral = await any_storage.update_referral_status(referral.id, "paid")
        assert referral.status == "paid"
        with pytest.raises(ValidationError):
            await any_storage.update_referral_status(referral.id, "converted", commission_amount=Decimal("1"))

    async def test_stats_upsert(self, any_storage: Storage) -> None:
        user = await any_storage.create_user("alice", "alice@example.com")
        assert await any_storage.get_referral_stats(user.id) is None
        stats = await any_storage.update_referral_stats(user.id, total_referrals=1)
        assert stats.total_referrals == 1
        assert stats.converted_referrals == 0
        assert stats.pending_commissions == Decimal("0.00")
        stats = await any_storage.update_referral_stats(user.id, pending_commissions="15.5")
        assert stats.total_referrals == 1
        assert stats.pending_commissions == Decimal("15.50")

    async def test_payouts(self, any_storage: Storage) -> None:
        user = await any_storage.create_user("alice", "alice@example.com")
        payout = await any_storage.create_payout(user.id, Decimal("9.99"), "paypal", {"email": "a@example.com"})
        assert payout.status == "pending"
        assert [p.id for p in await any_storage.get_user_payouts(user.id)] == [payout.id]


class TestPaymentTransactions:
    async def test_record_and_duplicate(self, any_storage: Storage) -> None:
        user = await any_storage.create_user("alice", "alice@example.com")
        entry = await any_storage.record_payment_transaction(user.id, "TX-1", Decimal("19.99"), "paypal", "premium")
        assert entry.status == "completed"
        assert (await any_storage.get_payment_transaction("TX-1")).user_id == user.id
        with pytest.raises(ConflictError):
            await any_storage.record_payment_transaction(user.id, "TX-1", Decimal("19.99"), "paypal", "premium")


class TestWallets:
    async def test_create_wallet(self, any_storage: Storage) -> None:
        user = await any_storage.create_user("alice", "alice@example.com")
        wallet = await any_storage.create_wallet(user.id, "personal")
        assert wallet.balance == Decimal("0.00")
        assert wallet.wallet_address.startswith(f"FMBN{user.id}PERSONAL")
        assert (await any_storage.get_user_wallet(user.id, "personal")).id == wallet.id

    async def test_create_wallet_twice_gives_distinct_wallets(self, any_storage: Storage) -> None:
        user = await any_storage.create_user("alice", "alice@example.com")
        first = await any_storage.create_wallet(user.id, "personal")
        second = await any_storage.create_wallet(user.id, "personal")
        assert first.id != second.id
        assert first.wallet_address != second.wallet_address

    async def test_wallet_for_missing_user(self, any_storage: Storage) -> None:
        with pytest.raises(NotFoundError):
            await any_storage.create_wallet(7, "personal")
        user = await any_storage.create_user("alice", "alice@example.com")
        with pytest.raises(ValidationError):
            await any_storage.create_wallet(user.id, "savings")

    async def test_withdrawal_round_trip(self, any_storage: Storage) -> None:
        user = await any_storage.create_user("alice", "alice@example.com")
        wallet = await any_storage.create_wallet(user.id, "personal")
        await any_storage.add_wallet_transaction(wallet.id, "credit", Decimal("150"))

        withdrawal = await any_storage.create_withdrawal(wallet.id, Decimal("100"), Decimal("2.50"), "bank")
        assert withdrawal.net_amount == Decimal("97.50")
        assert withdrawal.status == "pending"

        ledger = await any_storage.get_wallet_transactions(wallet.id)
        assert len(ledger) == 2
        debit = ledger[0]
        assert debit.transaction_type == "debit"
        assert debit.amount == Decimal("100.00")
        assert debit.status == "pending"
        assert debit.source_type == "withdrawal"
        assert debit.source_id == withdrawal.id
        assert await any_storage.get_wallet_balance(wallet.id) == Decimal("50.00")
        assert [w.id for w in await any_storage.get_user_withdrawals(user.id)] == [withdrawal.id]

    async def test_withdrawal_over_balance_writes_nothing(self, any_storage: Storage) -> None:
        user = await any_storage.create_user("alice", "alice@example.com")
        wallet = await any_storage.create_wallet(user.id, "personal")
        await any_storage.add_wallet_transaction(wallet.id, "credit", Decimal("10"))
        from fmbn.errors import InsufficientFundsError

        with pytest.raises(InsufficientFundsError):
            await any_storage.create_withdrawal(wallet.id, Decimal("100"), Decimal("2.50"), "bank")
        assert len(await any_storage.get_wallet_transactions(wallet.id)) == 1
        assert await any_storage.get_user_withdrawals(user.id) == []
        assert await any_storage.get_wallet_balance(wallet.id) == Decimal("10.00")

    async def test_withdrawal_fee_bounds(self, any_storage: Storage) -> None:
        user = await any_storage.create_user("alice", "alice@example.com")
        wallet = await any_storage.create_wallet(user.id, "personal")
        await any_storage.add_wallet_transaction(wallet.id, "credit", Decimal("10"))
        with pytest.raises(ValidationError):
            await any_storage.create_withdrawal(wallet.id, Decimal("2"), Decimal("2.50"), "bank")

    async def test_update_wallet_balance_skips_ledger(self, any_storage: Storage) -> None:
        user = await any_storage.create_user("alice", "alice@example.com")
        wallet = await any_storage.create_wallet(user.id, "business")
        wallet = await any_storage.update_wallet_balance(wallet.id, Decimal("20"), "credit")
        assert wallet.balance == Decimal("20.00")
        wallet = await any_storage.update_wallet_balance(wallet.id, Decimal("5"), "debit")
        assert wallet.balance == Decimal("15.00")
        assert await any_storage.get_wallet_transactions(wallet.id) == []

    async def test_ordering_is_newest_first(self, any_storage: Storage) -> None:
        user = await any_storage.create_user("alice", "alice@example.com")
        wallet = await any_storage.create_wallet(user.id, "personal")
        for amount in ("1", "2", "3"):
            await any_storage.add_wallet_transaction(wallet.id, "credit", Decimal(amount))
        ledger = await any_storage.get_wallet_transactions(wallet.id)
        assert [t.amount for t in ledger] == [Decimal("3.00"), Decimal("2.00"), Decimal("1.00")]
        assert [t.balance_after for t in ledger] == [Decimal("6.00"), Decimal("3.00"), Decimal("1.00")]
        assert ledger[0].created_at <= utcnow() + timedelta(seconds=1)
