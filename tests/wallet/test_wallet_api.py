"""Wallet endpoints."""

from __future__ import annotations

from httpx import AsyncClient

from fmbn.db.models import User
from fmbn.storage import MemStorage


async def test_get_wallet_auto_creates(client: AsyncClient, demo_user: User) -> None:
    response = await client.get("/api/wallet")
    assert response.status_code == 200
    wallet = response.json()
    assert wallet["walletType"] == "personal"
    assert wallet["balance"] == "0.00"
    assert wallet["userId"] == demo_user.id
    assert wallet["walletAddress"].startswith(f"FMBN{demo_user.id}PERSONAL")

    again = await client.get("/api/wallet")
    assert again.json()["id"] == wallet["id"]


async def test_create_wallet_returns_existing(client: AsyncClient) -> None:
    first = await client.post("/api/wallet/create", json={"walletType": "business"})
    second = await client.post("/api/wallet/create", json={"walletType": "business"})
    assert first.status_code == 200
    assert first.json()["message"] == "Wallet ready"
    assert first.json()["wallet"]["id"] == second.json()["wallet"]["id"]


async def test_create_wallet_unknown_type(client: AsyncClient) -> None:
    response = await client.post("/api/wallet/create", json={"walletType": "savings"})
    assert response.status_code == 400
    assert "savings" in response.json()["message"]


async def test_add_funds_and_transactions(client: AsyncClient) -> None:
    response = await client.post("/api/wallet/add-funds", json={"amount": "25.50"})
    assert response.status_code == 200
    data = response.json()
    assert data["newBalance"] == "25.50"
    assert data["transaction"]["transactionType"] == "credit"
    assert data["transaction"]["description"] == "Funds added to wallet"
    assert data["transaction"]["sourceType"] == "deposit"

    await client.post("/api/wallet/add-funds", json={"amount": 10, "description": "Invoice 12"})
    transactions = (await client.get("/api/wallet/transactions")).json()
    assert [t["amount"] for t in transactions] == ["10.00", "25.50"]
    assert transactions[0]["balanceAfter"] == "35.50"
    assert (await client.get("/api/wallet")).json()["balance"] == "35.50"


async def test_transactions_without_wallet(client: AsyncClient) -> None:
    response = await client.get("/api/wallet/transactions")
    assert response.status_code == 200
    assert response.json() == []


async def test_add_funds_rejects_non_positive(client: AsyncClient) -> None:
    response = await client.post("/api/wallet/add-funds", json={"amount": "-5"})
    assert response.status_code == 400
    assert response.json()["message"] == "Invalid request data"


async def test_withdraw(client: AsyncClient, storage: MemStorage) -> None:
    await client.post("/api/wallet/add-funds", json={"amount": "150"})
    response = await client.post(
        "/api/wallet/withdraw",
        json={"amount": "100", "withdrawalMethod": "bank", "withdrawalDetails": {"iban": "TT00"}},
    )
    assert response.status_code == 200
    withdrawal = response.json()["withdrawal"]
    assert withdrawal["netAmount"] == "97.50"
    assert withdrawal["transactionFee"] == "2.50"
    assert withdrawal["status"] == "pending"

    transactions = (await client.get("/api/wallet/transactions")).json()
    assert transactions[0]["transactionType"] == "debit"
    assert transactions[0]["status"] == "pending"
    assert transactions[0]["metadata"] == {"fee": "2.50", "netAmount": "97.50"}
    assert (await client.get("/api/wallet")).json()["balance"] == "50.00"

    withdrawals = (await client.get("/api/wallet/withdrawals")).json()
    assert [w["id"] for w in withdrawals] == [withdrawal["id"]]


async def test_withdraw_insufficient_balance(client: AsyncClient) -> None:
    await client.post("/api/wallet/add-funds", json={"amount": "20"})
    response = await client.post("/api/wallet/withdraw", json={"amount": "100", "withdrawalMethod": "bank"})
    assert response.status_code == 400
    assert response.json()["message"] == "Insufficient balance"
    assert response.json()["balance"] == "20.00"
    assert (await client.get("/api/wallet/withdrawals")).json() == []


async def test_withdraw_without_wallet(client: AsyncClient) -> None:
    response = await client.post("/api/wallet/withdraw", json={"amount": "10", "withdrawalMethod": "bank"})
    assert response.status_code == 404
    assert response.json()["message"] == "Wallet not found"


async def test_wallets_are_per_user(client: AsyncClient, storage: MemStorage) -> None:
    other = await storage.create_user("other", "other@example.com")
    await client.post("/api/wallet/add-funds", json={"amount": "5"})
    response = await client.get("/api/wallet", headers={"X-User-Id": str(other.id)})
    assert response.json()["userId"] == other.id
    assert response.json()["balance"] == "0.00"
