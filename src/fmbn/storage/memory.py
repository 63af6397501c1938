"""In-memory storage backend.

State lives in per-entity dicts keyed by auto-incrementing ids and is
local to one process. Entities are ORM model instances that are never
attached to a session.
"""

from __future__ import annotations

import itertools
from collections.abc import Callable, Iterable
from datetime import datetime
from decimal import Decimal
from typing import Any, TypeVar

import structlog

from fmbn.db.models import (
    DigitalProduct,
    DigitalProductPurchase,
    DigitalWallet,
    GeneratedName,
    PaymentTransaction,
    Referral,
    ReferralCode,
    ReferralPayout,
    ReferralStats,
    SearchHistory,
    User,
    UserFeedback,
    UserProfile,
    WalletTransaction,
    WalletWithdrawal,
)
from fmbn.errors import ConflictError, NotFoundError, ValidationError
from fmbn.policy import money
from fmbn.storage.base import (
    PRODUCT_FIELDS,
    PROFILE_FIELDS,
    Storage,
    apply_amount,
    check_fields,
    check_plan,
    check_rating,
    check_referral_transition,
    check_wallet_type,
    is_new_day,
    normalize_stats,
    premium_feature_column,
    utcnow,
)
from fmbn.storage.codes import generate_unique, make_referral_code, make_wallet_address, random_suffix
from fmbn.storage.locks import KeyedLocks

logger = structlog.get_logger()

T = TypeVar("T")

ZERO = Decimal("0.00")


def _newest_first(items: Iterable[T], key: Callable[[T], Any] | None = None) -> list[T]:
    return sorted(items, key=key or (lambda e: (e.created_at, e.id)), reverse=True)


class MemStorage(Storage):
    """Process-local storage backend."""

    def __init__(self, currency: str = "USD") -> None:
        self.currency = currency
        self._ids: dict[str, itertools.count[int]] = {}
        self.users: dict[int, User] = {}
        self.generated_names: dict[int, GeneratedName] = {}
        self.search_history: dict[int, SearchHistory] = {}
        self.digital_products: dict[int, DigitalProduct] = {}
        self.purchases: dict[int, DigitalProductPurchase] = {}
        self.profiles: dict[int, UserProfile] = {}
        self.feedback: dict[int, UserFeedback] = {}
        self.referral_codes: dict[int, ReferralCode] = {}
        self.referrals: dict[int, Referral] = {}
        self.referral_stats: dict[int, ReferralStats] = {}
        self.payouts: dict[int, ReferralPayout] = {}
        self.payment_transactions: dict[int, PaymentTransaction] = {}
        self.wallets: dict[int, DigitalWallet] = {}
        self.wallet_transactions: dict[int, WalletTransaction] = {}
        self.withdrawals: dict[int, WalletWithdrawal] = {}
        self._wallet_locks = KeyedLocks()

    def _next_id(self, table: str) -> int:
        return next(self._ids.setdefault(table, itertools.count(1)))

    def _require_user(self, user_id: int) -> User:
        user = self.users.get(user_id)
        if user is None:
            raise NotFoundError(f"User {user_id} not found")
        return user

    def _require_wallet(self, wallet_id: int) -> DigitalWallet:
        wallet = self.wallets.get(wallet_id)
        if wallet is None:
            raise NotFoundError(f"Wallet {wallet_id} not found")
        return wallet

    # --- Users ---

    async def get_user(self, user_id: int) -> User | None:
        return self.users.get(user_id)

    async def get_user_by_email(self, email: str) -> User | None:
        return next((u for u in self.users.values() if u.email == email), None)

    async def get_user_by_username(self, username: str) -> User | None:
        return next((u for u in self.users.values() if u.username == username), None)

    async def create_user(self, username: str, email: str, plan: str = "free") -> User:
        check_plan(plan)
        if await self.get_user_by_email(email):
            raise ConflictError("Email already registered", field="email")
        if await self.get_user_by_username(username):
            raise ConflictError("Username already taken", field="username")
        now = utcnow()
        user = User(
            id=self._next_id("users"),
            username=username,
            email=email,
            plan=plan,
            daily_usage=0,
            last_usage_reset=now,
            brand_analysis_usage=0,
            name_improvement_usage=0,
            payment_customer_id=None,
            payment_subscription_id=None,
            created_at=now,
        )
        self.users[user.id] = user
        return user

    async def update_user_usage(self, user_id: int, usage: int) -> User:
        user = self._require_user(user_id)
        now = utcnow()
        if is_new_day(user.last_usage_reset, now):
            user.daily_usage = 0
            user.last_usage_reset = now
        user.daily_usage = usage
        return user

    async def reset_daily_usage(self, user_id: int) -> User:
        user = self._require_user(user_id)
        user.daily_usage = 0
        user.last_usage_reset = utcnow()
        return user

    async def update_premium_feature_usage(self, user_id: int, feature: str) -> User:
        column = premium_feature_column(feature)
        user = self._require_user(user_id)
        setattr(user, column, getattr(user, column) + 1)
        return user

    async def update_user_plan(self, user_id: int, plan: str) -> User:
        check_plan(plan)
        user = self._require_user(user_id)
        user.plan = plan
        return user

    async def update_payment_customer(
        self, user_id: int, customer_id: str, subscription_id: str | None = None
    ) -> User:
        user = self._require_user(user_id)
        user.payment_customer_id = customer_id
        if subscription_id is not None:
            user.payment_subscription_id = subscription_id
        return user

    # --- Generated names and search history ---

    async def create_generated_name(
        self,
        user_id: int,
        name: str,
        description: str | None = None,
        industry: str | None = None,
        style: str | None = None,
        domains: dict[str, Any] | None = None,
    ) -> GeneratedName:
        self._require_user(user_id)
        entry = GeneratedName(
            id=self._next_id("generated_names"),
            user_id=user_id,
            name=name,
            description=description,
            industry=industry,
            style=style,
            domains=dict(domains or {}),
            is_favorite=False,
            created_at=utcnow(),
        )
        self.generated_names[entry.id] = entry
        return entry

    async def get_user_generated_names(self, user_id: int, limit: int = 50) -> list[GeneratedName]:
        names = (n for n in self.generated_names.values() if n.user_id == user_id)
        return _newest_first(names)[:limit]

    async def toggle_favorite(self, user_id: int, name_id: int) -> GeneratedName | None:
        entry = self.generated_names.get(name_id)
        if entry is None or entry.user_id != user_id:
            return None
        entry.is_favorite = not entry.is_favorite
        return entry

    async def get_user_favorites(self, user_id: int) -> list[GeneratedName]:
        return _newest_first(
            n for n in self.generated_names.values() if n.user_id == user_id and n.is_favorite
        )

    async def add_search_history(
        self, user_id: int, query: str, industry: str | None = None, style: str | None = None
    ) -> SearchHistory:
        self._require_user(user_id)
        entry = SearchHistory(
            id=self._next_id("search_history"),
            user_id=user_id,
            query=query,
            industry=industry,
            style=style,
            created_at=utcnow(),
        )
        self.search_history[entry.id] = entry
        return entry

    async def get_user_search_history(self, user_id: int, limit: int = 10) -> list[SearchHistory]:
        return _newest_first(h for h in self.search_history.values() if h.user_id == user_id)[:limit]

    # --- Digital products ---

    async def get_all_digital_products(self) -> list[DigitalProduct]:
        active = (p for p in self.digital_products.values() if p.is_active)
        return sorted(active, key=lambda p: (p.created_at, p.id))

    async def get_digital_product(self, product_id: int) -> DigitalProduct | None:
        return self.digital_products.get(product_id)

    async def create_digital_product(
        self,
        title: str,
        description: str,
        price: int,
        category: str,
        file_name: str,
        file_path: str,
        file_size: int,
        is_active: bool = True,
    ) -> DigitalProduct:
        now = utcnow()
        product = DigitalProduct(
            id=self._next_id("digital_products"),
            title=title,
            description=description,
            price=price,
            category=category,
            file_name=file_name,
            file_path=file_path,
            file_size=file_size,
            download_count=0,
            is_active=is_active,
            created_at=now,
            updated_at=now,
        )
        self.digital_products[product.id] = product
        return product

    async def update_digital_product(self, product_id: int, **changes: Any) -> DigitalProduct:
        check_fields(changes, PRODUCT_FIELDS, "product")
        product = self.digital_products.get(product_id)
        if product is None:
            raise NotFoundError(f"Product {product_id} not found")
        for key, value in changes.items():
            setattr(product, key, value)
        product.updated_at = utcnow()
        return product

    async def create_purchase(
        self,
        user_id: int,
        product_id: int,
        purchase_price: int,
        payment_method: str,
        payment_id: str | None = None,
    ) -> DigitalProductPurchase:
        self._require_user(user_id)
        if product_id not in self.digital_products:
            raise NotFoundError(f"Product {product_id} not found")
        purchase = DigitalProductPurchase(
            id=self._next_id("purchases"),
            user_id=user_id,
            product_id=product_id,
            purchase_price=purchase_price,
            payment_method=payment_method,
            payment_id=payment_id,
            download_count=0,
            last_download_at=None,
            created_at=utcnow(),
        )
        self.purchases[purchase.id] = purchase
        return purchase

    async def get_user_purchases(self, user_id: int) -> list[DigitalProductPurchase]:
        return _newest_first(p for p in self.purchases.values() if p.user_id == user_id)

    async def get_purchase(self, user_id: int, product_id: int) -> DigitalProductPurchase | None:
        return next(
            (p for p in self.purchases.values() if p.user_id == user_id and p.product_id == product_id),
            None,
        )

    async def increment_download_count(self, purchase_id: int) -> DigitalProductPurchase:
        purchase = self.purchases.get(purchase_id)
        if purchase is None:
            raise NotFoundError(f"Purchase {purchase_id} not found")
        purchase.download_count += 1
        purchase.last_download_at = utcnow()
        product = self.digital_products.get(purchase.product_id)
        if product is not None:
            product.download_count += 1
        return purchase

    # --- Profiles and feedback ---

    async def create_user_profile(self, user_id: int, **fields: Any) -> UserProfile:
        check_fields(fields, PROFILE_FIELDS, "profile")
        self._require_user(user_id)
        if await self.get_user_profile(user_id):
            raise ConflictError("Profile already exists")
        now = utcnow()
        values: dict[str, Any] = dict.fromkeys(PROFILE_FIELDS)
        values.update(interests=[], is_public=True)
        values.update(fields)
        profile = UserProfile(
            id=self._next_id("profiles"), user_id=user_id, created_at=now, updated_at=now, **values
        )
        self.profiles[profile.id] = profile
        return profile

    async def get_user_profile(self, user_id: int) -> UserProfile | None:
        return next((p for p in self.profiles.values() if p.user_id == user_id), None)

    async def update_user_profile(self, user_id: int, **changes: Any) -> UserProfile:
        check_fields(changes, PROFILE_FIELDS, "profile")
        profile = await self.get_user_profile(user_id)
        if profile is None:
            raise NotFoundError("Profile not found")
        for key, value in changes.items():
            setattr(profile, key, value)
        profile.updated_at = utcnow()
        return profile

    async def create_user_feedback(
        self,
        rating: int,
        message: str | None = None,
        category: str | None = None,
        user_id: int | None = None,
        user_agent: str | None = None,
        url: str | None = None,
        is_anonymous: bool = False,
    ) -> UserFeedback:
        check_rating(rating)
        if user_id is not None:
            self._require_user(user_id)
        entry = UserFeedback(
            id=self._next_id("feedback"),
            user_id=user_id,
            rating=rating,
            category=category,
            message=message,
            user_agent=user_agent,
            url=url,
            is_anonymous=is_anonymous,
            created_at=utcnow(),
        )
        self.feedback[entry.id] = entry
        return entry

    async def get_user_feedback(self, user_id: int) -> list[UserFeedback]:
        return _newest_first(f for f in self.feedback.values() if f.user_id == user_id)

    async def get_all_feedback(self, limit: int = 100) -> list[UserFeedback]:
        return _newest_first(self.feedback.values())[:limit]

    # --- Referrals ---

    async def create_referral_code(self, user_id: int) -> ReferralCode:
        self._require_user(user_id)
        existing = await self.get_referral_code(user_id)
        if existing is not None:
            return existing

        async def taken(code: str) -> bool:
            return any(c.code == code for c in self.referral_codes.values())

        code = await generate_unique(
            lambda attempt: make_referral_code(user_id, random_suffix(2) if attempt else ""),
            taken,
            "referral code",
        )
        entry = ReferralCode(
            id=self._next_id("referral_codes"), user_id=user_id, code=code, is_active=True, created_at=utcnow()
        )
        self.referral_codes[entry.id] = entry
        logger.info("referral_code_created", user_id=user_id, code=code)
        return entry

    async def get_referral_code(self, user_id: int) -> ReferralCode | None:
        return next((c for c in self.referral_codes.values() if c.user_id == user_id and c.is_active), None)

    async def get_referral_code_by_code(self, code: str) -> ReferralCode | None:
        return next((c for c in self.referral_codes.values() if c.code == code and c.is_active), None)

    async def create_referral(self, referrer_id: int, referee_id: int, referral_code: str) -> Referral:
        self._require_user(referrer_id)
        self._require_user(referee_id)
        referral = Referral(
            id=self._next_id("referrals"),
            referrer_id=referrer_id,
            referee_id=referee_id,
            referral_code=referral_code,
            status="pending",
            conversion_date=None,
            commission_amount=None,
            currency=self.currency,
            created_at=utcnow(),
        )
        self.referrals[referral.id] = referral
        return referral

    async def get_referral(self, referral_id: int) -> Referral | None:
        return self.referrals.get(referral_id)

    async def get_referrals_by_user(self, referrer_id: int) -> list[Referral]:
        return _newest_first(r for r in self.referrals.values() if r.referrer_id == referrer_id)

    async def update_referral_status(
        self,
        referral_id: int,
        status: str,
        conversion_date: datetime | None = None,
        commission_amount: Decimal | None = None,
    ) -> Referral:
        referral = self.referrals.get(referral_id)
        if referral is None:
            raise NotFoundError(f"Referral {referral_id} not found")
        check_referral_transition(referral.status, status, commission_amount)
        referral.status = status
        if status == "converted":
            referral.conversion_date = conversion_date or utcnow()
            referral.commission_amount = money(commission_amount)  # type: ignore[arg-type]
        return referral

    async def get_referral_stats(self, user_id: int) -> ReferralStats | None:
        return next((s for s in self.referral_stats.values() if s.user_id == user_id), None)

    async def update_referral_stats(self, user_id: int, **changes: Any) -> ReferralStats:
        values = normalize_stats(changes)
        stats = await self.get_referral_stats(user_id)
        if stats is None:
            self._require_user(user_id)
            stats = ReferralStats(
                id=self._next_id("referral_stats"),
                user_id=user_id,
                total_referrals=0,
                converted_referrals=0,
                total_commissions=ZERO,
                pending_commissions=ZERO,
                paid_commissions=ZERO,
                currency=self.currency,
                country=None,
            )
            self.referral_stats[stats.id] = stats
        for key, value in values.items():
            setattr(stats, key, value)
        stats.updated_at = utcnow()
        return stats

    async def create_payout(
        self,
        user_id: int,
        amount: Decimal,
        payment_method: str | None = None,
        payment_details: dict[str, Any] | None = None,
    ) -> ReferralPayout:
        self._require_user(user_id)
        payout = ReferralPayout(
            id=self._next_id("payouts"),
            user_id=user_id,
            amount=money(amount),
            currency=self.currency,
            payment_method=payment_method,
            payment_details=payment_details,
            status="pending",
            transaction_id=None,
            processed_at=None,
            created_at=utcnow(),
        )
        self.payouts[payout.id] = payout
        return payout

    async def get_user_payouts(self, user_id: int) -> list[ReferralPayout]:
        return _newest_first(p for p in self.payouts.values() if p.user_id == user_id)

    # --- Payment transactions ---

    async def record_payment_transaction(
        self,
        user_id: int,
        transaction_id: str,
        amount: Decimal,
        payment_method: str,
        subscription_plan: str,
        referral_code: str | None = None,
        currency: str = "USD",
        status: str = "completed",
    ) -> PaymentTransaction:
        self._require_user(user_id)
        if await self.get_payment_transaction(transaction_id):
            raise ConflictError("Transaction already recorded", transactionId=transaction_id)
        entry = PaymentTransaction(
            id=self._next_id("payment_transactions"),
            user_id=user_id,
            transaction_id=transaction_id,
            amount=money(amount),
            currency=currency,
            payment_method=payment_method,
            subscription_plan=subscription_plan,
            referral_code=referral_code,
            status=status,
            created_at=utcnow(),
        )
        self.payment_transactions[entry.id] = entry
        return entry

    async def get_payment_transaction(self, transaction_id: str) -> PaymentTransaction | None:
        return next(
            (t for t in self.payment_transactions.values() if t.transaction_id == transaction_id), None
        )

    # --- Wallets ---

    async def create_wallet(self, user_id: int, wallet_type: str) -> DigitalWallet:
        check_wallet_type(wallet_type)
        self._require_user(user_id)

        async def taken(address: str) -> bool:
            return any(w.wallet_address == address for w in self.wallets.values())

        address = await generate_unique(lambda _: make_wallet_address(user_id, wallet_type), taken, "wallet address")
        now = utcnow()
        wallet = DigitalWallet(
            id=self._next_id("wallets"),
            user_id=user_id,
            wallet_address=address,
            wallet_type=wallet_type,
            balance=ZERO,
            currency=self.currency,
            is_active=True,
            last_transaction_at=None,
            created_at=now,
            updated_at=now,
        )
        self.wallets[wallet.id] = wallet
        logger.info("wallet_created", user_id=user_id, wallet_id=wallet.id, wallet_type=wallet_type)
        return wallet

    async def get_wallet(self, wallet_id: int) -> DigitalWallet | None:
        return self.wallets.get(wallet_id)

    async def get_user_wallet(self, user_id: int, wallet_type: str | None = None) -> DigitalWallet | None:
        wallets = _newest_first(
            w for w in self.wallets.values()
            if w.user_id == user_id and (wallet_type is None or w.wallet_type == wallet_type)
        )
        return wallets[0] if wallets else None

    async def get_wallet_balance(self, wallet_id: int) -> Decimal:
        wallet = self.wallets.get(wallet_id)
        return wallet.balance if wallet is not None else ZERO

    def _append_ledger(
        self, wallet: DigitalWallet, transaction_type: str, amount: Decimal, **fields: Any
    ) -> WalletTransaction:
        new_balance = apply_amount(wallet.balance, transaction_type, amount)
        now = utcnow()
        entry = WalletTransaction(
            id=self._next_id("wallet_transactions"),
            wallet_id=wallet.id,
            transaction_type=transaction_type,
            amount=money(amount),
            currency=wallet.currency,
            balance_after=new_balance,
            created_at=now,
            **fields,
        )
        self.wallet_transactions[entry.id] = entry
        wallet.balance = new_balance
        wallet.last_transaction_at = now
        wallet.updated_at = now
        return entry

    async def add_wallet_transaction(
        self,
        wallet_id: int,
        transaction_type: str,
        amount: Decimal,
        description: str | None = None,
        reference_id: str | None = None,
        source_type: str | None = None,
        source_id: int | None = None,
        status: str = "completed",
        metadata: dict[str, Any] | None = None,
    ) -> WalletTransaction:
        async with self._wallet_locks.hold(wallet_id):
            wallet = self._require_wallet(wallet_id)
            return self._append_ledger(
                wallet,
                transaction_type,
                amount,
                description=description,
                reference_id=reference_id,
                source_type=source_type,
                source_id=source_id,
                status=status,
                extra_data=metadata,
            )

    async def get_wallet_transactions(self, wallet_id: int, limit: int = 50) -> list[WalletTransaction]:
        return _newest_first(t for t in self.wallet_transactions.values() if t.wallet_id == wallet_id)[:limit]

    async def create_withdrawal(
        self,
        wallet_id: int,
        amount: Decimal,
        fee: Decimal,
        withdrawal_method: str,
        withdrawal_details: dict[str, Any] | None = None,
    ) -> WalletWithdrawal:
        amount, fee = money(amount), money(fee)
        if fee < 0 or fee > amount:
            raise ValidationError("Fee must be between zero and the withdrawal amount")
        async with self._wallet_locks.hold(wallet_id):
            wallet = self._require_wallet(wallet_id)
            # Validates the debit before anything is written.
            apply_amount(wallet.balance, "debit", amount)
            now = utcnow()
            withdrawal = WalletWithdrawal(
                id=self._next_id("withdrawals"),
                wallet_id=wallet_id,
                amount=amount,
                currency=wallet.currency,
                withdrawal_method=withdrawal_method,
                withdrawal_details=withdrawal_details,
                status="pending",
                processed_at=None,
                transaction_fee=fee,
                net_amount=money(amount - fee),
                external_transaction_id=None,
                notes=None,
                created_at=now,
                updated_at=now,
            )
            self._append_ledger(
                wallet,
                "debit",
                amount,
                description=f"Withdrawal via {withdrawal_method}",
                reference_id=None,
                source_type="withdrawal",
                source_id=withdrawal.id,
                status="pending",
                extra_data={"fee": str(fee), "netAmount": str(withdrawal.net_amount)},
            )
            self.withdrawals[withdrawal.id] = withdrawal
        logger.info("withdrawal_created", wallet_id=wallet_id, withdrawal_id=withdrawal.id, amount=str(amount))
        return withdrawal

    async def get_user_withdrawals(self, user_id: int) -> list[WalletWithdrawal]:
        wallet_ids = {w.id for w in self.wallets.values() if w.user_id == user_id}
        return _newest_first(w for w in self.withdrawals.values() if w.wallet_id in wallet_ids)

    async def update_wallet_balance(self, wallet_id: int, amount: Decimal, transaction_type: str) -> DigitalWallet:
        async with self._wallet_locks.hold(wallet_id):
            wallet = self._require_wallet(wallet_id)
            wallet.balance = apply_amount(wallet.balance, transaction_type, amount)
            wallet.updated_at = utcnow()
            return wallet
