"""Wallet endpoints. Every route works on the caller's wallets only."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from fmbn.db.models import DigitalWallet, User
from fmbn.dependencies import get_current_user, get_policy, get_storage
from fmbn.errors import NotFoundError
from fmbn.policy import BusinessPolicy
from fmbn.storage import Storage
from fmbn.wallet.schemas import (
    AddFundsRequest,
    AddFundsResponse,
    CreateWalletRequest,
    CreateWalletResponse,
    TransactionResponse,
    WalletResponse,
    WithdrawalResponse,
    WithdrawRequest,
    WithdrawResponse,
)

router = APIRouter(prefix="/api/wallet", tags=["Wallet"])


async def _wallet_for(storage: Storage, user: User, wallet_type: str = "personal") -> DigitalWallet:
    """The user's wallet of ``wallet_type``, created on first use."""
    wallet = await storage.get_user_wallet(user.id, wallet_type)
    if wallet is None:
        wallet = await storage.create_wallet(user.id, wallet_type)
    return wallet


@router.post("/create", response_model=CreateWalletResponse)
async def create_wallet(
    body: CreateWalletRequest | None = None,
    user: User = Depends(get_current_user),  # noqa: B008
    storage: Storage = Depends(get_storage),  # noqa: B008
) -> CreateWalletResponse:
    body = body or CreateWalletRequest()
    wallet = await _wallet_for(storage, user, body.wallet_type)
    return CreateWalletResponse(wallet=WalletResponse.model_validate(wallet))


@router.get("", response_model=WalletResponse)
async def get_wallet(
    wallet_type: str = Query("personal", alias="walletType"),
    user: User = Depends(get_current_user),  # noqa: B008
    storage: Storage = Depends(get_storage),  # noqa: B008
) -> WalletResponse:
    return WalletResponse.model_validate(await _wallet_for(storage, user, wallet_type))


@router.post("/add-funds", response_model=AddFundsResponse)
async def add_funds(
    body: AddFundsRequest,
    user: User = Depends(get_current_user),  # noqa: B008
    storage: Storage = Depends(get_storage),  # noqa: B008
) -> AddFundsResponse:
    wallet = await _wallet_for(storage, user)
    entry = await storage.add_wallet_transaction(
        wallet.id,
        "credit",
        body.amount,
        description=body.description or "Funds added to wallet",
        source_type=body.source_type,
    )
    return AddFundsResponse(transaction=TransactionResponse.model_validate(entry), new_balance=entry.balance_after)


@router.get("/transactions", response_model=list[TransactionResponse])
async def list_transactions(
    limit: int = Query(50, ge=1, le=500),
    user: User = Depends(get_current_user),  # noqa: B008
    storage: Storage = Depends(get_storage),  # noqa: B008
) -> list[TransactionResponse]:
    wallet = await storage.get_user_wallet(user.id, "personal")
    if wallet is None:
        return []
    return [TransactionResponse.model_validate(t) for t in await storage.get_wallet_transactions(wallet.id, limit)]


@router.post("/withdraw", response_model=WithdrawResponse)
async def withdraw(
    body: WithdrawRequest,
    user: User = Depends(get_current_user),  # noqa: B008
    storage: Storage = Depends(get_storage),  # noqa: B008
    policy: BusinessPolicy = Depends(get_policy),  # noqa: B008
) -> WithdrawResponse:
    """Request a payout. The full amount is debited now; the fee comes out of it."""
    wallet = await storage.get_user_wallet(user.id, "personal")
    if wallet is None:
        raise NotFoundError("Wallet not found")
    withdrawal = await storage.create_withdrawal(
        wallet.id,
        body.amount,
        policy.withdrawal_fee,
        body.withdrawal_method,
        body.withdrawal_details,
    )
    return WithdrawResponse(withdrawal=WithdrawalResponse.model_validate(withdrawal))


@router.get("/withdrawals", response_model=list[WithdrawalResponse])
async def list_withdrawals(
    user: User = Depends(get_current_user),  # noqa: B008
    storage: Storage = Depends(get_storage),  # noqa: B008
) -> list[WithdrawalResponse]:
    return [WithdrawalResponse.model_validate(w) for w in await storage.get_user_withdrawals(user.id)]
