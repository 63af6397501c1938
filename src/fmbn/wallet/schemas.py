"""Wallet request/response shapes. Balances and amounts are 2dp decimal strings."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Annotated, Any

from pydantic import AliasChoices, Field

from fmbn.schemas import CamelModel

Amount = Annotated[Decimal, Field(gt=0, max_digits=13, decimal_places=2)]


class WalletResponse(CamelModel):
    id: int
    user_id: int
    wallet_address: str
    wallet_type: str
    balance: Decimal
    currency: str
    is_active: bool
    last_transaction_at: datetime | None
    created_at: datetime
    updated_at: datetime


class TransactionResponse(CamelModel):
    id: int
    wallet_id: int
    transaction_type: str
    amount: Decimal
    currency: str
    description: str | None
    reference_id: str | None
    source_type: str | None
    source_id: int | None
    status: str
    balance_after: Decimal
    # ORM attribute is extra_data; "metadata" is the wire name
    metadata: dict[str, Any] | None = Field(None, validation_alias=AliasChoices("extra_data", "metadata"))
    created_at: datetime


class WithdrawalResponse(CamelModel):
    id: int
    wallet_id: int
    amount: Decimal
    currency: str
    withdrawal_method: str
    withdrawal_details: dict[str, Any] | None
    status: str
    processed_at: datetime | None
    transaction_fee: Decimal
    net_amount: Decimal
    created_at: datetime


class CreateWalletRequest(CamelModel):
    wallet_type: str = "personal"


class CreateWalletResponse(CamelModel):
    message: str = "Wallet ready"
    wallet: WalletResponse


class AddFundsRequest(CamelModel):
    amount: Amount
    description: str | None = Field(None, max_length=500)
    source_type: str = Field("deposit", max_length=50)


class AddFundsResponse(CamelModel):
    message: str = "Funds added successfully"
    transaction: TransactionResponse
    new_balance: Decimal


class WithdrawRequest(CamelModel):
    amount: Amount
    withdrawal_method: str = Field(..., min_length=1, max_length=50)
    withdrawal_details: dict[str, Any] | None = None


class WithdrawResponse(CamelModel):
    message: str = "Withdrawal request created"
    withdrawal: WithdrawalResponse
