"""Referral program endpoints."""

from __future__ import annotations

from httpx import AsyncClient

from fmbn.db.models import User


async def test_create_code_idempotent(client: AsyncClient, demo_user: User) -> None:
    first = await client.post("/api/referral/create-code")
    second = await client.post("/api/referral/create-code")
    assert first.status_code == 200
    assert first.json()["code"] == second.json()["code"]
    assert first.json()["userId"] == demo_user.id


async def test_stats_for_user_without_activity(client: AsyncClient, demo_user: User) -> None:
    response = await client.get(f"/api/referral/stats/{demo_user.id}")
    assert response.status_code == 200
    data = response.json()
    assert data["stats"]["totalReferrals"] == 0
    assert data["stats"]["pendingCommissions"] == "0.00"
    assert data["stats"]["currency"] == "USD"
    assert data["referrals"] == []
    assert data["payouts"] == []


async def test_stats_unknown_user(client: AsyncClient) -> None:
    response = await client.get("/api/referral/stats/9999")
    assert response.status_code == 404
    assert "message" in response.json()


async def test_track_convert_payout_flow(client: AsyncClient, demo_user: User) -> None:
    code = (await client.post("/api/referral/create-code")).json()["code"]

    tracked = await client.post("/api/referral/track", json={"referralCode": code, "newUserEmail": "pal@example.com"})
    assert tracked.status_code == 200
    assert tracked.json()["message"] == "Referral tracked successfully"
    referral_id = tracked.json()["referral"]["id"]

    converted = await client.post(
        "/api/referral/convert", json={"referralId": referral_id, "plan": "premium", "amount": "49.99"}
    )
    assert converted.status_code == 200
    assert converted.json()["commission"] == "15.00"
    assert converted.json()["referral"]["status"] == "converted"

    paid = await client.post(f"/api/referral/{referral_id}/payout", json={"paymentMethod": "paypal"})
    assert paid.status_code == 200
    assert paid.json()["payout"]["amount"] == "15.00"

    dashboard = (await client.get(f"/api/referral/stats/{demo_user.id}")).json()
    assert dashboard["stats"]["totalReferrals"] == 1
    assert dashboard["stats"]["convertedReferrals"] == 1
    assert dashboard["stats"]["paidCommissions"] == "15.00"
    assert dashboard["stats"]["pendingCommissions"] == "0.00"
    assert [r["status"] for r in dashboard["referrals"]] == ["paid"]
    assert len(dashboard["payouts"]) == 1


async def test_track_invalid_code(client: AsyncClient) -> None:
    response = await client.post(
        "/api/referral/track", json={"referralCode": "BOGUS", "newUserEmail": "pal@example.com"}
    )
    assert response.status_code == 404
    assert response.json()["message"] == "Invalid referral code"


async def test_track_rejects_bad_email(client: AsyncClient) -> None:
    response = await client.post("/api/referral/track", json={"referralCode": "X", "newUserEmail": "not-an-email"})
    assert response.status_code == 400
    assert response.json()["message"] == "Invalid request data"
    assert response.json()["errors"]


async def test_convert_rejects_non_positive_amount(client: AsyncClient) -> None:
    response = await client.post("/api/referral/convert", json={"referralId": 1, "amount": "0"})
    assert response.status_code == 400


async def test_payout_before_conversion(client: AsyncClient) -> None:
    code = (await client.post("/api/referral/create-code")).json()["code"]
    tracked = await client.post("/api/referral/track", json={"referralCode": code, "newUserEmail": "pal@example.com"})
    response = await client.post(f"/api/referral/{tracked.json()['referral']['id']}/payout")
    assert response.status_code == 400
