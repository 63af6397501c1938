"""Storage repository interface.

Route handlers and services reach persisted state only through a
:class:`Storage`. Two backends implement it with identical behavior:
:class:`~fmbn.storage.memory.MemStorage` and
:class:`~fmbn.storage.database.DatabaseStorage`.

Read operations return ``None`` or an empty list when nothing matches.
Mutations on a missing owner raise :class:`~fmbn.errors.NotFoundError`,
uniqueness violations raise :class:`~fmbn.errors.ConflictError`.
"""

from __future__ import annotations

import abc
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from fmbn.db.models import (
    PLANS,
    REFERRAL_STATUSES,
    WALLET_TYPES,
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
from fmbn.errors import InsufficientFundsError, ValidationError
from fmbn.policy import money

TRANSACTION_TYPES = ("credit", "debit")
PREMIUM_FEATURES = {
    "brand_analysis": "brand_analysis_usage",
    "name_improvement": "name_improvement_usage",
}
PROFILE_FIELDS = frozenset({
    "display_name", "bio", "business_name", "business_stage", "industry", "location",
    "website", "linkedin_url", "twitter_handle", "instagram_handle", "interests",
    "looking_for", "can_help", "is_public",
})
PRODUCT_FIELDS = frozenset({
    "title", "description", "price", "category", "file_name", "file_path",
    "file_size", "is_active",
})
STATS_FIELDS = frozenset({
    "total_referrals", "converted_referrals", "total_commissions",
    "pending_commissions", "paid_commissions", "currency", "country",
})
_MONEY_STATS = frozenset({"total_commissions", "pending_commissions", "paid_commissions"})

# Allowed forward moves of a referral.
REFERRAL_TRANSITIONS = {"pending": {"converted"}, "converted": {"paid"}, "paid": set()}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def is_new_day(last_reset: datetime | None, now: datetime) -> bool:
    """True when ``last_reset`` falls on another UTC calendar day than ``now``."""
    if last_reset is None:
        return True
    if last_reset.tzinfo is None:
        last_reset = last_reset.replace(tzinfo=timezone.utc)
    return last_reset.astimezone(timezone.utc).date() != now.astimezone(timezone.utc).date()


def check_fields(changes: dict[str, Any], allowed: frozenset[str], entity: str) -> None:
    unknown = set(changes) - allowed
    if unknown:
        raise ValidationError(f"Unknown {entity} fields: {', '.join(sorted(unknown))}")


def check_plan(plan: str) -> None:
    if plan not in PLANS:
        raise ValidationError(f"Unknown plan '{plan}'")


def check_wallet_type(wallet_type: str) -> None:
    if wallet_type not in WALLET_TYPES:
        raise ValidationError(f"Unknown wallet type '{wallet_type}'")


def check_rating(rating: int) -> None:
    if not 1 <= rating <= 5:
        raise ValidationError("Rating must be between 1 and 5")


def premium_feature_column(feature: str) -> str:
    try:
        return PREMIUM_FEATURES[feature]
    except KeyError:
        raise ValidationError(f"Unknown premium feature '{feature}'") from None


def check_referral_transition(
    current: str,
    status: str,
    commission_amount: Decimal | None,
) -> None:
    if status not in REFERRAL_STATUSES:
        raise ValidationError(f"Unknown referral status '{status}'")
    if status not in REFERRAL_TRANSITIONS[current]:
        raise ValidationError(f"Referral cannot move from '{current}' to '{status}'")
    if status == "converted" and commission_amount is None:
        raise ValidationError("A converted referral needs a commission amount")


def normalize_stats(changes: dict[str, Any]) -> dict[str, Any]:
    check_fields(changes, STATS_FIELDS, "referral stats")
    return {k: money(v) if k in _MONEY_STATS else v for k, v in changes.items()}


def apply_amount(balance: Decimal, transaction_type: str, amount: Decimal | int | float | str) -> Decimal:
    """New balance after a credit or debit.

    Debits larger than the balance raise :class:`InsufficientFundsError`.
    """
    if transaction_type not in TRANSACTION_TYPES:
        raise ValidationError(f"Unknown transaction type '{transaction_type}'")
    value = money(amount)
    if value <= 0:
        raise ValidationError("Amount must be positive")
    if transaction_type == "credit":
        return money(balance + value)
    if value > balance:
        raise InsufficientFundsError(balance=str(money(balance)), requested=str(value))
    return money(balance - value)


class Storage(abc.ABC):
    """The capability set shared by every storage backend."""

    async def close(self) -> None:  # noqa: B027
        """Release backend resources."""

    # --- Users ---

    @abc.abstractmethod
    async def get_user(self, user_id: int) -> User | None: ...

    @abc.abstractmethod
    async def get_user_by_email(self, email: str) -> User | None: ...

    @abc.abstractmethod
    async def get_user_by_username(self, username: str) -> User | None: ...

    @abc.abstractmethod
    async def create_user(self, username: str, email: str, plan: str = "free") -> User: ...

    @abc.abstractmethod
    async def update_user_usage(self, user_id: int, usage: int) -> User:
        """Set ``daily_usage``, zeroing it first when the last reset was on another day."""

    @abc.abstractmethod
    async def reset_daily_usage(self, user_id: int) -> User: ...

    @abc.abstractmethod
    async def update_premium_feature_usage(self, user_id: int, feature: str) -> User: ...

    @abc.abstractmethod
    async def update_user_plan(self, user_id: int, plan: str) -> User: ...

    @abc.abstractmethod
    async def update_payment_customer(
        self, user_id: int, customer_id: str, subscription_id: str | None = None
    ) -> User: ...

    # --- Generated names and search history ---

    @abc.abstractmethod
    async def create_generated_name(
        self,
        user_id: int,
        name: str,
        description: str | None = None,
        industry: str | None = None,
        style: str | None = None,
        domains: dict[str, Any] | None = None,
    ) -> GeneratedName: ...

    @abc.abstractmethod
    async def get_user_generated_names(self, user_id: int, limit: int = 50) -> list[GeneratedName]: ...

    @abc.abstractmethod
    async def toggle_favorite(self, user_id: int, name_id: int) -> GeneratedName | None:
        """Flip ``is_favorite`` on a name owned by ``user_id``.

        Returns the updated name, or ``None`` (and changes nothing) when the
        name is missing or owned by someone else.
        """

    @abc.abstractmethod
    async def get_user_favorites(self, user_id: int) -> list[GeneratedName]: ...

    @abc.abstractmethod
    async def add_search_history(
        self, user_id: int, query: str, industry: str | None = None, style: str | None = None
    ) -> SearchHistory: ...

    @abc.abstractmethod
    async def get_user_search_history(self, user_id: int, limit: int = 10) -> list[SearchHistory]: ...

    # --- Digital products ---

    @abc.abstractmethod
    async def get_all_digital_products(self) -> list[DigitalProduct]: ...

    @abc.abstractmethod
    async def get_digital_product(self, product_id: int) -> DigitalProduct | None: ...

    @abc.abstractmethod
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
    ) -> DigitalProduct: ...

    @abc.abstractmethod
    async def update_digital_product(self, product_id: int, **changes: Any) -> DigitalProduct: ...

    @abc.abstractmethod
    async def create_purchase(
        self,
        user_id: int,
        product_id: int,
        purchase_price: int,
        payment_method: str,
        payment_id: str | None = None,
    ) -> DigitalProductPurchase: ...

    @abc.abstractmethod
    async def get_user_purchases(self, user_id: int) -> list[DigitalProductPurchase]: ...

    @abc.abstractmethod
    async def get_purchase(self, user_id: int, product_id: int) -> DigitalProductPurchase | None: ...

    @abc.abstractmethod
    async def increment_download_count(self, purchase_id: int) -> DigitalProductPurchase: ...

    # --- Profiles and feedback ---

    @abc.abstractmethod
    async def create_user_profile(self, user_id: int, **fields: Any) -> UserProfile: ...

    @abc.abstractmethod
    async def get_user_profile(self, user_id: int) -> UserProfile | None: ...

    @abc.abstractmethod
    async def update_user_profile(self, user_id: int, **changes: Any) -> UserProfile: ...

    @abc.abstractmethod
    async def create_user_feedback(
        self,
        rating: int,
        message: str | None = None,
        category: str | None = None,
        user_id: int | None = None,
        user_agent: str | None = None,
        url: str | None = None,
        is_anonymous: bool = False,
    ) -> UserFeedback: ...

    @abc.abstractmethod
    async def get_user_feedback(self, user_id: int) -> list[UserFeedback]: ...

    @abc.abstractmethod
    async def get_all_feedback(self, limit: int = 100) -> list[UserFeedback]: ...

    # --- Referrals ---

    @abc.abstractmethod
    async def create_referral_code(self, user_id: int) -> ReferralCode:
        """Return the user's active code, creating one on first call."""

    @abc.abstractmethod
    async def get_referral_code(self, user_id: int) -> ReferralCode | None: ...

    @abc.abstractmethod
    async def get_referral_code_by_code(self, code: str) -> ReferralCode | None: ...

    @abc.abstractmethod
    async def create_referral(self, referrer_id: int, referee_id: int, referral_code: str) -> Referral: ...

    @abc.abstractmethod
    async def get_referral(self, referral_id: int) -> Referral | None: ...

    @abc.abstractmethod
    async def get_referrals_by_user(self, referrer_id: int) -> list[Referral]: ...

    @abc.abstractmethod
    async def update_referral_status(
        self,
        referral_id: int,
        status: str,
        conversion_date: datetime | None = None,
        commission_amount: Decimal | None = None,
    ) -> Referral: ...

    @abc.abstractmethod
    async def get_referral_stats(self, user_id: int) -> ReferralStats | None: ...

    @abc.abstractmethod
    async def update_referral_stats(self, user_id: int, **changes: Any) -> ReferralStats:
        """Upsert: create a zeroed row if missing, then apply ``changes``."""

    @abc.abstractmethod
    async def create_payout(
        self,
        user_id: int,
        amount: Decimal,
        payment_method: str | None = None,
        payment_details: dict[str, Any] | None = None,
    ) -> ReferralPayout: ...

    @abc.abstractmethod
    async def get_user_payouts(self, user_id: int) -> list[ReferralPayout]: ...

    # --- Payment transactions ---

    @abc.abstractmethod
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
    ) -> PaymentTransaction: ...

    @abc.abstractmethod
    async def get_payment_transaction(self, transaction_id: str) -> PaymentTransaction | None: ...

    # --- Wallets ---

    @abc.abstractmethod
    async def create_wallet(self, user_id: int, wallet_type: str) -> DigitalWallet: ...

    @abc.abstractmethod
    async def get_wallet(self, wallet_id: int) -> DigitalWallet | None: ...

    @abc.abstractmethod
    async def get_user_wallet(self, user_id: int, wallet_type: str | None = None) -> DigitalWallet | None:
        """Newest wallet of the user, optionally filtered by type."""

    @abc.abstractmethod
    async def get_wallet_balance(self, wallet_id: int) -> Decimal: ...

    @abc.abstractmethod
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
        """Append a ledger entry and move the wallet balance with it, atomically."""

    @abc.abstractmethod
    async def get_wallet_transactions(self, wallet_id: int, limit: int = 50) -> list[WalletTransaction]: ...

    @abc.abstractmethod
    async def create_withdrawal(
        self,
        wallet_id: int,
        amount: Decimal,
        fee: Decimal,
        withdrawal_method: str,
        withdrawal_details: dict[str, Any] | None = None,
    ) -> WalletWithdrawal:
        """Create a withdrawal together with its pending debit of the full amount."""

    @abc.abstractmethod
    async def get_user_withdrawals(self, user_id: int) -> list[WalletWithdrawal]: ...

    @abc.abstractmethod
    async def update_wallet_balance(self, wallet_id: int, amount: Decimal, transaction_type: str) -> DigitalWallet:
        """Move the balance directly, without a ledger entry."""
