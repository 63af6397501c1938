"""Initial schema: users, naming, marketplace, payments, referrals and wallets.

Revision ID: 001_initial_schema
Revises: None
Create Date: 2026-10-18
"""

from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

revision: str = "001_initial_schema"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _ts(name: str, nullable: bool = False, default: bool = True) -> sa.Column:
    return sa.Column(
        name,
        sa.DateTime(timezone=True),
        nullable=nullable,
        server_default=sa.text("now()") if default else None,
    )


def _user_fk(name: str = "user_id", ondelete: str = "CASCADE", nullable: bool = False) -> sa.Column:
    return sa.Column(name, sa.BigInteger(), sa.ForeignKey("users.id", ondelete=ondelete), nullable=nullable)


def upgrade() -> None:
    """Create all tables."""
    # --- Users ---
    op.create_table(
        "users",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("username", sa.String(64), nullable=False, unique=True),
        sa.Column("email", sa.String(320), nullable=False, unique=True),
        sa.Column("plan", sa.String(20), nullable=False, server_default="free"),
        sa.Column("daily_usage", sa.Integer(), nullable=False, server_default="0"),
        _ts("last_usage_reset"),
        sa.Column("brand_analysis_usage", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("name_improvement_usage", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("payment_customer_id", sa.String(128), nullable=True),
        sa.Column("payment_subscription_id", sa.String(128), nullable=True),
        _ts("created_at"),
    )
    op.execute(
        "ALTER TABLE users ADD CONSTRAINT ck_users_plan "
        "CHECK (plan IN ('free', 'starter', 'core', 'premium', 'pro', 'scale', 'enterprise'))"
    )

    op.create_table(
        "user_profiles",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.BigInteger(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True),
        sa.Column("display_name", sa.String(100), nullable=True),
        sa.Column("bio", sa.Text(), nullable=True),
        sa.Column("business_name", sa.String(200), nullable=True),
        sa.Column("business_stage", sa.String(50), nullable=True),
        sa.Column("industry", sa.String(100), nullable=True),
        sa.Column("location", sa.String(100), nullable=True),
        sa.Column("website", sa.String(255), nullable=True),
        sa.Column("linkedin_url", sa.String(255), nullable=True),
        sa.Column("twitter_handle", sa.String(50), nullable=True),
        sa.Column("instagram_handle", sa.String(50), nullable=True),
        sa.Column("interests", postgresql.JSONB(), nullable=True),
        sa.Column("looking_for", sa.Text(), nullable=True),
        sa.Column("can_help", sa.Text(), nullable=True),
        sa.Column("is_public", sa.Boolean(), nullable=True, server_default="true"),
        _ts("created_at"),
        _ts("updated_at"),
    )

    op.create_table(
        "user_feedback",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        _user_fk(ondelete="SET NULL", nullable=True),
        sa.Column("rating", sa.Integer(), nullable=False),
        sa.Column("category", sa.String(50), nullable=True),
        sa.Column("message", sa.Text(), nullable=True),
        sa.Column("user_agent", sa.Text(), nullable=True),
        sa.Column("url", sa.String(255), nullable=True),
        sa.Column("is_anonymous", sa.Boolean(), nullable=True, server_default="false"),
        _ts("created_at"),
    )
    op.execute("ALTER TABLE user_feedback ADD CONSTRAINT ck_user_feedback_rating CHECK (rating BETWEEN 1 AND 5)")

    # --- Naming ---
    op.create_table(
        "generated_names",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        _user_fk(),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("industry", sa.String(100), nullable=True),
        sa.Column("style", sa.String(50), nullable=True),
        sa.Column("domains", postgresql.JSONB(), nullable=True),
        sa.Column("is_favorite", sa.Boolean(), nullable=False, server_default="false"),
        _ts("created_at"),
    )
    op.create_index("ix_generated_names_user_id", "generated_names", ["user_id"])

    op.create_table(
        "search_history",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        _user_fk(),
        sa.Column("query", sa.Text(), nullable=False),
        sa.Column("industry", sa.String(100), nullable=True),
        sa.Column("style", sa.String(50), nullable=True),
        _ts("created_at"),
    )
    op.create_index("ix_search_history_user_id", "search_history", ["user_id"])

    # --- Marketplace ---
    op.create_table(
        "digital_products",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("price", sa.Integer(), nullable=False),
        sa.Column("category", sa.String(50), nullable=False),
        sa.Column("file_name", sa.String(255), nullable=False),
        sa.Column("file_path", sa.String(500), nullable=False),
        sa.Column("file_size", sa.Integer(), nullable=False),
        sa.Column("download_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="true"),
        _ts("created_at"),
        _ts("updated_at"),
    )

    op.create_table(
        "digital_product_purchases",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        _user_fk(),
        sa.Column("product_id", sa.BigInteger(), sa.ForeignKey("digital_products.id"), nullable=False),
        sa.Column("purchase_price", sa.Integer(), nullable=False),
        sa.Column("payment_method", sa.String(50), nullable=False),
        sa.Column("payment_id", sa.String(128), nullable=True),
        sa.Column("download_count", sa.Integer(), nullable=False, server_default="0"),
        _ts("last_download_at", nullable=True, default=False),
        _ts("created_at"),
    )
    op.create_index("ix_digital_product_purchases_user_product", "digital_product_purchases", ["user_id", "product_id"])

    # --- Payments ---
    op.create_table(
        "payment_transactions",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        _user_fk(),
        sa.Column("transaction_id", sa.String(128), nullable=False, unique=True),
        sa.Column("amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("currency", sa.String(3), nullable=False, server_default="USD"),
        sa.Column("payment_method", sa.String(50), nullable=False),
        sa.Column("subscription_plan", sa.String(20), nullable=False),
        sa.Column("referral_code", sa.String(50), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="completed"),
        _ts("created_at"),
    )

    # --- Referrals ---
    op.create_table(
        "referral_codes",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        _user_fk(),
        sa.Column("code", sa.String(50), nullable=False, unique=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="true"),
        _ts("created_at"),
    )
    op.create_index("ix_referral_codes_user_id", "referral_codes", ["user_id"])

    op.create_table(
        "referrals",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        _user_fk("referrer_id"),
        _user_fk("referee_id"),
        sa.Column("referral_code", sa.String(50), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        _ts("conversion_date", nullable=True, default=False),
        sa.Column("commission_amount", sa.Numeric(10, 2), nullable=True),
        sa.Column("currency", sa.String(3), nullable=False, server_default="USD"),
        _ts("created_at"),
    )
    op.create_index("ix_referrals_referrer_id", "referrals", ["referrer_id"])
    op.execute(
        "ALTER TABLE referrals ADD CONSTRAINT ck_referrals_status "
        "CHECK (status IN ('pending', 'converted', 'paid'))"
    )

    op.create_table(
        "referral_stats",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.BigInteger(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True),
        sa.Column("total_referrals", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("converted_referrals", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_commissions", sa.Numeric(10, 2), nullable=False, server_default="0.00"),
        sa.Column("pending_commissions", sa.Numeric(10, 2), nullable=False, server_default="0.00"),
        sa.Column("paid_commissions", sa.Numeric(10, 2), nullable=False, server_default="0.00"),
        sa.Column("currency", sa.String(3), nullable=False, server_default="USD"),
        sa.Column("country", sa.String(2), nullable=True),
        _ts("updated_at"),
    )

    op.create_table(
        "referral_payouts",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        _user_fk(),
        sa.Column("amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("currency", sa.String(3), nullable=False, server_default="USD"),
        sa.Column("payment_method", sa.String(50), nullable=True),
        sa.Column("payment_details", postgresql.JSONB(), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("transaction_id", sa.String(100), nullable=True),
        _ts("processed_at", nullable=True, default=False),
        _ts("created_at"),
    )

    # --- Wallets ---
    op.create_table(
        "digital_wallets",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        _user_fk(),
        sa.Column("wallet_address", sa.String(100), nullable=False, unique=True),
        sa.Column("wallet_type", sa.String(50), nullable=False),
        sa.Column("balance", sa.Numeric(15, 2), nullable=False, server_default="0.00"),
        sa.Column("currency", sa.String(3), nullable=False, server_default="USD"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="true"),
        _ts("last_transaction_at", nullable=True, default=False),
        _ts("created_at"),
        _ts("updated_at"),
    )
    op.create_index("ix_digital_wallets_user_type", "digital_wallets", ["user_id", "wallet_type"])

    op.create_table(
        "wallet_transactions",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column(
            "wallet_id", sa.BigInteger(), sa.ForeignKey("digital_wallets.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("transaction_type", sa.String(20), nullable=False),
        sa.Column("amount", sa.Numeric(15, 2), nullable=False),
        sa.Column("currency", sa.String(3), nullable=False, server_default="USD"),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("reference_id", sa.String(100), nullable=True),
        sa.Column("source_type", sa.String(50), nullable=True),
        sa.Column("source_id", sa.Integer(), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="completed"),
        sa.Column("balance_after", sa.Numeric(15, 2), nullable=False),
        sa.Column("metadata", postgresql.JSONB(), nullable=True),
        _ts("created_at"),
    )
    op.create_index("ix_wallet_transactions_wallet_id", "wallet_transactions", ["wallet_id"])
    op.execute(
        "ALTER TABLE wallet_transactions ADD CONSTRAINT ck_wallet_transactions_type "
        "CHECK (transaction_type IN ('credit', 'debit'))"
    )

    op.create_table(
        "wallet_withdrawals",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column(
            "wallet_id", sa.BigInteger(), sa.ForeignKey("digital_wallets.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("amount", sa.Numeric(15, 2), nullable=False),
        sa.Column("currency", sa.String(3), nullable=False, server_default="USD"),
        sa.Column("withdrawal_method", sa.String(50), nullable=False),
        sa.Column("withdrawal_details", postgresql.JSONB(), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        _ts("processed_at", nullable=True, default=False),
        sa.Column("transaction_fee", sa.Numeric(10, 2), nullable=False, server_default="0.00"),
        sa.Column("net_amount", sa.Numeric(15, 2), nullable=False),
        sa.Column("external_transaction_id", sa.String(100), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        _ts("created_at"),
        _ts("updated_at"),
    )
    op.create_index("ix_wallet_withdrawals_wallet_id", "wallet_withdrawals", ["wallet_id"])


def downgrade() -> None:
    """Drop all tables, children first."""
    for table in (
        "wallet_withdrawals",
        "wallet_transactions",
        "digital_wallets",
        "referral_payouts",
        "referral_stats",
        "referrals",
        "referral_codes",
        "payment_transactions",
        "digital_product_purchases",
        "digital_products",
        "search_history",
        "generated_names",
        "user_feedback",
        "user_profiles",
        "users",
    ):
        op.drop_table(table)
