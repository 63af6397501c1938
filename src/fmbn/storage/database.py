"""Relational storage backend on SQLAlchemy async sessions.

One session per operation, committed before returning. Every column of a
returned entity is populated, so callers can read them after the session
has closed.

Wallet mutations run under a per-wallet asyncio lock and inside a single
transaction that reads the wallet row ``FOR UPDATE`` (ignored on SQLite),
so the ledger row and the balance it moves are written together.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, TypeVar

import structlog
from sqlalchemy import Select, select, text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from fmbn.db.base import Base
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

M = TypeVar("M", bound=Base)

ZERO = Decimal("0.00")


async def _commit(session: AsyncSession, conflict_message: str) -> None:
    """Commit, translating unique-constraint failures into ConflictError."""
    try:
        await session.commit()
    except IntegrityError as exc:
        await session.rollback()
        raise ConflictError(conflict_message) from exc


class DatabaseStorage(Storage):
    """Storage backed by PostgreSQL (asyncpg) or SQLite (aiosqlite)."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], currency: str = "USD") -> None:
        self._session_factory = session_factory
        self.currency = currency
        self._wallet_locks = KeyedLocks()

    async def ping(self) -> None:
        """Round-trip a trivial query. Raises if the database is unreachable."""
        async with self._session_factory() as session:
            await session.execute(text("SELECT 1"))

    async def _first(self, stmt: Select[tuple[M]]) -> M | None:
        async with self._session_factory() as session:
            result = await session.execute(stmt.limit(1))
            return result.scalars().first()

    async def _all(self, stmt: Select[tuple[M]]) -> list[M]:
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def _get(self, model: type[M], ident: int) -> M | None:
        async with self._session_factory() as session:
            return await session.get(model, ident)

    async def _insert(self, entity: M, conflict_message: str = "Already exists") -> M:
        async with self._session_factory() as session:
            session.add(entity)
            await _commit(session, conflict_message)
            return entity

    @staticmethod
    async def _require(session: AsyncSession, model: type[M], ident: int, label: str) -> M:
        entity = await session.get(model, ident)
        if entity is None:
            raise NotFoundError(f"{label} {ident} not found")
        return entity

    @staticmethod
    async def _lock_wallet(session: AsyncSession, wallet_id: int) -> DigitalWallet:
        result = await session.execute(
            select(DigitalWallet).where(DigitalWallet.id == wallet_id).with_for_update()
        )
        wallet = result.scalar_one_or_none()
        if wallet is None:
            raise NotFoundError(f"Wallet {wallet_id} not found")
        return wallet

    async def _require_user(self, user_id: int) -> None:
        async with self._session_factory() as session:
            await self._require(session, User, user_id, "User")

    # --- Users ---

    async def get_user(self, user_id: int) -> User | None:
        return await self._get(User, user_id)

    async def get_user_by_email(self, email: str) -> User | None:
        return await self._first(select(User).where(User.email == email))

    async def get_user_by_username(self, username: str) -> User | None:
        return await self._first(select(User).where(User.username == username))

    async def create_user(self, username: str, email: str, plan: str = "free") -> User:
        check_plan(plan)
        if await self.get_user_by_email(email):
            raise ConflictError("Email already registered", field="email")
        if await self.get_user_by_username(username):
            raise ConflictError("Username already taken", field="username")
        now = utcnow()
        user = User(
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
        return await self._insert(user, "User already exists")

    async def update_user_usage(self, user_id: int, usage: int) -> User:
        async with self._session_factory() as session:
            user = await self._require(session, User, user_id, "User")
            now = utcnow()
            if is_new_day(user.last_usage_reset, now):
                user.daily_usage = 0
                user.last_usage_reset = now
            user.daily_usage = usage
            await session.commit()
            return user

    async def reset_daily_usage(self, user_id: int) -> User:
        async with self._session_factory() as session:
            user = await self._require(session, User, user_id, "User")
            user.daily_usage = 0
            user.last_usage_reset = utcnow()
            await session.commit()
            return user

    async def update_premium_feature_usage(self, user_id: int, feature: str) -> User:
        column = premium_feature_column(feature)
        async with self._session_factory() as session:
            user = await self._require(session, User, user_id, "User")
            setattr(user, column, getattr(user, column) + 1)
            await session.commit()
            return user

    async def update_user_plan(self, user_id: int, plan: str) -> User:
        check_plan(plan)
        async with self._session_factory() as session:
            user = await self._require(session, User, user_id, "User")
            user.plan = plan
            await session.commit()
            return user

    async def update_payment_customer(
        self, user_id: int, customer_id: str, subscription_id: str | None = None
    ) -> User:
        async with self._session_factory() as session:
            user = await self._require(session, User, user_id, "User")
            user.payment_customer_id = customer_id
            if subscription_id is not None:
                user.payment_subscription_id = subscription_id
            await session.commit()
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
        await self._require_user(user_id)
        entry = GeneratedName(
            user_id=user_id,
            name=name,
            description=description,
            industry=industry,
            style=style,
            domains=dict(domains or {}),
            is_favorite=False,
            created_at=utcnow(),
        )
        return await self._insert(entry)

    async def get_user_generated_names(self, user_id: int, limit: int = 50) -> list[GeneratedName]:
        return await self._all(
            select(GeneratedName)
            .where(GeneratedName.user_id == user_id)
            .order_by(GeneratedName.created_at.desc(), GeneratedName.id.desc())
            .limit(limit)
        )

    async def toggle_favorite(self, user_id: int, name_id: int) -> GeneratedName | None:
        async with self._session_factory() as session:
            entry = await session.get(GeneratedName, name_id)
            if entry is None or entry.user_id != user_id:
                return None
            entry.is_favorite = not entry.is_favorite
            await session.commit()
            return entry

    async def get_user_favorites(self, user_id: int) -> list[GeneratedName]:
        return await self._all(
            select(GeneratedName)
            .where(GeneratedName.user_id == user_id, GeneratedName.is_favorite.is_(True))
            .order_by(GeneratedName.created_at.desc(), GeneratedName.id.desc())
        )

    async def add_search_history(
        self, user_id: int, query: str, industry: str | None = None, style: str | None = None
    ) -> SearchHistory:
        await self._require_user(user_id)
        entry = SearchHistory(user_id=user_id, query=query, industry=industry, style=style, created_at=utcnow())
        return await self._insert(entry)

    async def get_user_search_history(self, user_id: int, limit: int = 10) -> list[SearchHistory]:
        return await self._all(
            select(SearchHistory)
            .where(SearchHistory.user_id == user_id)
            .order_by(SearchHistory.created_at.desc(), SearchHistory.id.desc())
            .limit(limit)
        )

    # --- Digital products ---

    async def get_all_digital_products(self) -> list[DigitalProduct]:
        return await self._all(
            select(DigitalProduct)
            .where(DigitalProduct.is_active.is_(True))
            .order_by(DigitalProduct.created_at, DigitalProduct.id)
        )

    async def get_digital_product(self, product_id: int) -> DigitalProduct | None:
        return await self._get(DigitalProduct, product_id)

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
        return await self._insert(product)

    async def update_digital_product(self, product_id: int, **changes: Any) -> DigitalProduct:
        check_fields(changes, PRODUCT_FIELDS, "product")
        async with self._session_factory() as session:
            product = await self._require(session, DigitalProduct, product_id, "Product")
            for key, value in changes.items():
                setattr(product, key, value)
            product.updated_at = utcnow()
            await session.commit()
            return product

    async def create_purchase(
        self,
        user_id: int,
        product_id: int,
        purchase_price: int,
        payment_method: str,
        payment_id: str | None = None,
    ) -> DigitalProductPurchase:
        async with self._session_factory() as session:
            await self._require(session, User, user_id, "User")
            await self._require(session, DigitalProduct, product_id, "Product")
            purchase = DigitalProductPurchase(
                user_id=user_id,
                product_id=product_id,
                purchase_price=purchase_price,
                payment_method=payment_method,
                payment_id=payment_id,
                download_count=0,
                last_download_at=None,
                created_at=utcnow(),
            )
            session.add(purchase)
            await session.commit()
            return purchase

    async def get_user_purchases(self, user_id: int) -> list[DigitalProductPurchase]:
        return await self._all(
            select(DigitalProductPurchase)
            .where(DigitalProductPurchase.user_id == user_id)
            .order_by(DigitalProductPurchase.created_at.desc(), DigitalProductPurchase.id.desc())
        )

    async def get_purchase(self, user_id: int, product_id: int) -> DigitalProductPurchase | None:
        return await self._first(
            select(DigitalProductPurchase)
            .where(
                DigitalProductPurchase.user_id == user_id,
                DigitalProductPurchase.product_id == product_id,
            )
            .order_by(DigitalProductPurchase.id)
        )

    async def increment_download_count(self, purchase_id: int) -> DigitalProductPurchase:
        async with self._session_factory() as session:
            purchase = await self._require(session, DigitalProductPurchase, purchase_id, "Purchase")
            purchase.download_count += 1
            purchase.last_download_at = utcnow()
            product = await session.get(DigitalProduct, purchase.product_id)
            if product is not None:
                product.download_count += 1
            await session.commit()
            return purchase

    # --- Profiles and feedback ---

    async def create_user_profile(self, user_id: int, **fields: Any) -> UserProfile:
        check_fields(fields, PROFILE_FIELDS, "profile")
        await self._require_user(user_id)
        if await self.get_user_profile(user_id):
            raise ConflictError("Profile already exists")
        now = utcnow()
        values: dict[str, Any] = dict.fromkeys(PROFILE_FIELDS)
        values.update(interests=[], is_public=True)
        values.update(fields)
        profile = UserProfile(user_id=user_id, created_at=now, updated_at=now, **values)
        return await self._insert(profile, "Profile already exists")

    async def get_user_profile(self, user_id: int) -> UserProfile | None:
        return await self._first(select(UserProfile).where(UserProfile.user_id == user_id))

    async def update_user_profile(self, user_id: int, **changes: Any) -> UserProfile:
        check_fields(changes, PROFILE_FIELDS, "profile")
        async with self._session_factory() as session:
            result = await session.execute(select(UserProfile).where(UserProfile.user_id == user_id))
            profile = result.scalar_one_or_none()
            if profile is None:
                raise NotFoundError("Profile not found")
            for key, value in changes.items():
                setattr(profile, key, value)
            profile.updated_at = utcnow()
            await session.commit()
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
            await self._require_user(user_id)
        entry = UserFeedback(
            user_id=user_id,
            rating=rating,
            category=category,
            message=message,
            user_agent=user_agent,
            url=url,
            is_anonymous=is_anonymous,
            created_at=utcnow(),
        )
        return await self._insert(entry)

    async def get_user_feedback(self, user_id: int) -> list[UserFeedback]:
        return await self._all(
            select(UserFeedback)
            .where(UserFeedback.user_id == user_id)
            .order_by(UserFeedback.created_at.desc(), UserFeedback.id.desc())
        )

    async def get_all_feedback(self, limit: int = 100) -> list[UserFeedback]:
        return await self._all(
            select(UserFeedback).order_by(UserFeedback.created_at.desc(), UserFeedback.id.desc()).limit(limit)
        )

    # --- Referrals ---

    async def create_referral_code(self, user_id: int) -> ReferralCode:
        await self._require_user(user_id)
        existing = await self.get_referral_code(user_id)
        if existing is not None:
            return existing

        async def taken(code: str) -> bool:
            return await self._first(select(ReferralCode).where(ReferralCode.code == code)) is not None

        code = await generate_unique(
            lambda attempt: make_referral_code(user_id, random_suffix(2) if attempt else ""),
            taken,
            "referral code",
        )
        entry = await self._insert(
            ReferralCode(user_id=user_id, code=code, is_active=True, created_at=utcnow()),
            "Referral code already exists",
        )
        logger.info("referral_code_created", user_id=user_id, code=code)
        return entry

    async def get_referral_code(self, user_id: int) -> ReferralCode | None:
        return await self._first(
            select(ReferralCode)
            .where(ReferralCode.user_id == user_id, ReferralCode.is_active.is_(True))
            .order_by(ReferralCode.id)
        )

    async def get_referral_code_by_code(self, code: str) -> ReferralCode | None:
        return await self._first(
            select(ReferralCode).where(ReferralCode.code == code, ReferralCode.is_active.is_(True))
        )

    async def create_referral(self, referrer_id: int, referee_id: int, referral_code: str) -> Referral:
        await self._require_user(referrer_id)
        await self._require_user(referee_id)
        referral = Referral(
            referrer_id=referrer_id,
            referee_id=referee_id,
            referral_code=referral_code,
            status="pending",
            conversion_date=None,
            commission_amount=None,
            currency=self.currency,
            created_at=utcnow(),
        )
        return await self._insert(referral)

    async def get_referral(self, referral_id: int) -> Referral | None:
        return await self._get(Referral, referral_id)

    async def get_referrals_by_user(self, referrer_id: int) -> list[Referral]:
        return await self._all(
            select(Referral)
            .where(Referral.referrer_id == referrer_id)
            .order_by(Referral.created_at.desc(), Referral.id.desc())
        )

    async def update_referral_status(
        self,
        referral_id: int,
        status: str,
        conversion_date: datetime | None = None,
        commission_amount: Decimal | None = None,
    ) -> Referral:
        async with self._session_factory() as session:
            referral = await self._require(session, Referral, referral_id, "Referral")
            check_referral_transition(referral.status, status, commission_amount)
            referral.status = status
            if status == "converted":
                referral.conversion_date = conversion_date or utcnow()
                referral.commission_amount = money(commission_amount)  # type: ignore[arg-type]
            await session.commit()
            return referral

    async def get_referral_stats(self, user_id: int) -> ReferralStats | None:
        return await self._first(select(ReferralStats).where(ReferralStats.user_id == user_id))

    async def update_referral_stats(self, user_id: int, **changes: Any) -> ReferralStats:
        values = normalize_stats(changes)
        async with self._session_factory() as session:
            result = await session.execute(select(ReferralStats).where(ReferralStats.user_id == user_id))
            stats = result.scalar_one_or_none()
            if stats is None:
                await self._require(session, User, user_id, "User")
                stats = ReferralStats(
                    user_id=user_id,
                    total_referrals=0,
                    converted_referrals=0,
                    total_commissions=ZERO,
                    pending_commissions=ZERO,
                    paid_commissions=ZERO,
                    currency=self.currency,
                    country=None,
                )
                session.add(stats)
            for key, value in values.items():
                setattr(stats, key, value)
            stats.updated_at = utcnow()
            await _commit(session, "Referral stats already exist")
            return stats

    async def create_payout(
        self,
        user_id: int,
        amount: Decimal,
        payment_method: str | None = None,
        payment_details: dict[str, Any] | None = None,
    ) -> ReferralPayout:
        await self._require_user(user_id)
        payout = ReferralPayout(
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
        return await self._insert(payout)

    async def get_user_payouts(self, user_id: int) -> list[ReferralPayout]:
        return await self._all(
            select(ReferralPayout)
            .where(ReferralPayout.user_id == user_id)
            .order_by(ReferralPayout.created_at.desc(), ReferralPayout.id.desc())
        )

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
        await self._require_user(user_id)
        if await self.get_payment_transaction(transaction_id):
            raise ConflictError("Transaction already recorded", transactionId=transaction_id)
        entry = PaymentTransaction(
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
        return await self._insert(entry, "Transaction already recorded")

    async def get_payment_transaction(self, transaction_id: str) -> PaymentTransaction | None:
        return await self._first(
            select(PaymentTransaction).where(PaymentTransaction.transaction_id == transaction_id)
        )

    # --- Wallets ---

    async def create_wallet(self, user_id: int, wallet_type: str) -> DigitalWallet:
        check_wallet_type(wallet_type)
        await self._require_user(user_id)

        async def taken(address: str) -> bool:
            stmt = select(DigitalWallet).where(DigitalWallet.wallet_address == address)
            return await self._first(stmt) is not None

        address = await generate_unique(lambda _: make_wallet_address(user_id, wallet_type), taken, "wallet address")
        now = utcnow()
        wallet = DigitalWallet(
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
        wallet = await self._insert(wallet, "Wallet address already exists")
        logger.info("wallet_created", user_id=user_id, wallet_id=wallet.id, wallet_type=wallet_type)
        return wallet

    async def get_wallet(self, wallet_id: int) -> DigitalWallet | None:
        return await self._get(DigitalWallet, wallet_id)

    async def get_user_wallet(self, user_id: int, wallet_type: str | None = None) -> DigitalWallet | None:
        stmt = select(DigitalWallet).where(DigitalWallet.user_id == user_id)
        if wallet_type is not None:
            stmt = stmt.where(DigitalWallet.wallet_type == wallet_type)
        return await self._first(stmt.order_by(DigitalWallet.created_at.desc(), DigitalWallet.id.desc()))

    async def get_wallet_balance(self, wallet_id: int) -> Decimal:
        wallet = await self.get_wallet(wallet_id)
        return wallet.balance if wallet is not None else ZERO

    @staticmethod
    def _append_ledger(
        session: AsyncSession,
        wallet: DigitalWallet,
        transaction_type: str,
        amount: Decimal,
        **fields: Any,
    ) -> WalletTransaction:
        new_balance = apply_amount(wallet.balance, transaction_type, amount)
        now = utcnow()
        entry = WalletTransaction(
            wallet_id=wallet.id,
            transaction_type=transaction_type,
            amount=money(amount),
            currency=wallet.currency,
            balance_after=new_balance,
            created_at=now,
            **fields,
        )
        session.add(entry)
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
        async with self._wallet_locks.hold(wallet_id), self._session_factory() as session:
            wallet = await self._lock_wallet(session, wallet_id)
            entry = self._append_ledger(
                session,
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
            await session.commit()
            return entry

    async def get_wallet_transactions(self, wallet_id: int, limit: int = 50) -> list[WalletTransaction]:
        return await self._all(
            select(WalletTransaction)
            .where(WalletTransaction.wallet_id == wallet_id)
            .order_by(WalletTransaction.created_at.desc(), WalletTransaction.id.desc())
            .limit(limit)
        )

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
        async with self._wallet_locks.hold(wallet_id), self._session_factory() as session:
            wallet = await self._lock_wallet(session, wallet_id)
            apply_amount(wallet.balance, "debit", amount)
            now = utcnow()
            withdrawal = WalletWithdrawal(
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
            session.add(withdrawal)
            await session.flush()
            self._append_ledger(
                session,
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
            await session.commit()
        logger.info("withdrawal_created", wallet_id=wallet_id, withdrawal_id=withdrawal.id, amount=str(amount))
        return withdrawal

    async def get_user_withdrawals(self, user_id: int) -> list[WalletWithdrawal]:
        wallet_ids = select(DigitalWallet.id).where(DigitalWallet.user_id == user_id)
        return await self._all(
            select(WalletWithdrawal)
            .where(WalletWithdrawal.wallet_id.in_(wallet_ids))
            .order_by(WalletWithdrawal.created_at.desc(), WalletWithdrawal.id.desc())
        )

    async def update_wallet_balance(self, wallet_id: int, amount: Decimal, transaction_type: str) -> DigitalWallet:
        async with self._wallet_locks.hold(wallet_id), self._session_factory() as session:
            wallet = await self._lock_wallet(session, wallet_id)
            wallet.balance = apply_amount(wallet.balance, transaction_type, amount)
            wallet.updated_at = utcnow()
            await session.commit()
            return wallet
