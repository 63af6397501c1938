"""Referral program endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from fmbn.db.models import User
from fmbn.dependencies import get_current_user, get_policy, get_storage
from fmbn.errors import NotFoundError
from fmbn.policy import BusinessPolicy
from fmbn.referrals import service
from fmbn.referrals.schemas import (
    ConvertReferralRequest,
    ConvertReferralResponse,
    PayoutRequest,
    PayoutResponse,
    PayoutResult,
    ReferralCodeResponse,
    ReferralDashboard,
    ReferralResponse,
    ReferralStatsResponse,
    TrackReferralRequest,
    TrackReferralResponse,
)
from fmbn.storage import Storage

router = APIRouter(prefix="/api/referral", tags=["Referrals"])


@router.post("/create-code", response_model=ReferralCodeResponse)
async def create_code(
    user: User = Depends(get_current_user),  # noqa: B008
    storage: Storage = Depends(get_storage),  # noqa: B008
) -> ReferralCodeResponse:
    """The caller's referral code. Repeated calls return the same code."""
    return ReferralCodeResponse.model_validate(await storage.create_referral_code(user.id))


@router.get("/stats/{user_id}", response_model=ReferralDashboard)
async def get_stats(
    user_id: int,
    storage: Storage = Depends(get_storage),  # noqa: B008
    policy: BusinessPolicy = Depends(get_policy),  # noqa: B008
) -> ReferralDashboard:
    if await storage.get_user(user_id) is None:
        raise NotFoundError(f"User {user_id} not found")
    stats = await storage.get_referral_stats(user_id)
    return ReferralDashboard(
        stats=(
            ReferralStatsResponse.model_validate(stats)
            if stats is not None
            else ReferralStatsResponse(currency=policy.currency)
        ),
        referrals=[ReferralResponse.model_validate(r) for r in await storage.get_referrals_by_user(user_id)],
        payouts=[PayoutResponse.model_validate(p) for p in await storage.get_user_payouts(user_id)],
    )


@router.post("/track", response_model=TrackReferralResponse)
async def track(
    body: TrackReferralRequest,
    storage: Storage = Depends(get_storage),  # noqa: B008
) -> TrackReferralResponse:
    """Sign up ``newUserEmail`` under a referral code."""
    referral = await service.track_referral(storage, body.referral_code, str(body.new_user_email), plan="starter")
    return TrackReferralResponse(referral=ReferralResponse.model_validate(referral))


@router.post("/convert", response_model=ConvertReferralResponse)
async def convert(
    body: ConvertReferralRequest,
    storage: Storage = Depends(get_storage),  # noqa: B008
    policy: BusinessPolicy = Depends(get_policy),  # noqa: B008
) -> ConvertReferralResponse:
    referral, commission = await service.convert_referral(storage, policy, body.referral_id, body.amount)
    return ConvertReferralResponse(commission=commission, referral=ReferralResponse.model_validate(referral))


@router.post("/{referral_id}/payout", response_model=PayoutResult)
async def payout(
    referral_id: int,
    body: PayoutRequest | None = None,
    storage: Storage = Depends(get_storage),  # noqa: B008
) -> PayoutResult:
    body = body or PayoutRequest()
    referral, payout_row = await service.mark_referral_paid(
        storage, referral_id, body.payment_method, body.payment_details
    )
    return PayoutResult(
        referral=ReferralResponse.model_validate(referral),
        payout=PayoutResponse.model_validate(payout_row),
    )
