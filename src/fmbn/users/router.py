"""Account, profile and feedback endpoints."""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, Header

from fmbn.config import Settings
from fmbn.db.models import User
from fmbn.dependencies import get_app_settings, get_current_user, get_policy, get_storage
from fmbn.policy import BusinessPolicy
from fmbn.seed import ensure_demo_user
from fmbn.storage import Storage
from fmbn.users.schemas import (
    FeedbackRequest,
    FeedbackResponse,
    InitDemoResponse,
    ProfileRequest,
    ProfileResponse,
    UserResponse,
    UserUsageResponse,
)

logger = structlog.get_logger()

router = APIRouter(prefix="/api", tags=["Users"])


def _usage_response(user: User, policy: BusinessPolicy) -> UserUsageResponse:
    limit = policy.display_limit(user.plan)
    return UserUsageResponse(
        **UserResponse.model_validate(user).model_dump(),
        usage_today=user.daily_usage,
        usage_limit=limit,
        remaining_usage=max(0, limit - user.daily_usage),
    )


# ---------------------------------------------------------------------------
# Account
# ---------------------------------------------------------------------------


@router.get("/user", response_model=UserUsageResponse)
async def get_user(
    user: User = Depends(get_current_user),  # noqa: B008
    policy: BusinessPolicy = Depends(get_policy),  # noqa: B008
) -> UserUsageResponse:
    """Current account with usage counters."""
    return _usage_response(user, policy)


@router.post("/init-demo", response_model=InitDemoResponse)
async def init_demo(
    storage: Storage = Depends(get_storage),  # noqa: B008
    settings: Settings = Depends(get_app_settings),  # noqa: B008
) -> InitDemoResponse:
    """Create the demo account and profile if they are missing."""
    user = await ensure_demo_user(storage, settings)
    return InitDemoResponse(message="Demo data initialized", user=UserResponse.model_validate(user))


# ---------------------------------------------------------------------------
# Profile
# ---------------------------------------------------------------------------


@router.get("/profile", response_model=ProfileResponse | None)
async def get_profile(
    user: User = Depends(get_current_user),  # noqa: B008
    storage: Storage = Depends(get_storage),  # noqa: B008
) -> ProfileResponse | None:
    profile = await storage.get_user_profile(user.id)
    return ProfileResponse.model_validate(profile) if profile else None


@router.post("/profile", response_model=ProfileResponse)
async def save_profile(
    body: ProfileRequest,
    user: User = Depends(get_current_user),  # noqa: B008
    storage: Storage = Depends(get_storage),  # noqa: B008
) -> ProfileResponse:
    """Create the profile on first save, update the sent fields afterwards."""
    if await storage.get_user_profile(user.id):
        profile = await storage.update_user_profile(user.id, **body.model_dump(exclude_unset=True))
    else:
        profile = await storage.create_user_profile(user.id, **body.model_dump(exclude_none=True))
        logger.info("profile_created", user_id=user.id)
    return ProfileResponse.model_validate(profile)


# ---------------------------------------------------------------------------
# Feedback
# ---------------------------------------------------------------------------


@router.post("/feedback", response_model=FeedbackResponse)
async def submit_feedback(
    body: FeedbackRequest,
    user: User = Depends(get_current_user),  # noqa: B008
    storage: Storage = Depends(get_storage),  # noqa: B008
    user_agent: str | None = Header(default=None),
    referer: str | None = Header(default=None),
) -> FeedbackResponse:
    feedback = await storage.create_user_feedback(
        rating=body.rating,
        message=body.message,
        category=body.category,
        user_id=None if body.is_anonymous else user.id,
        user_agent=user_agent,
        url=referer,
        is_anonymous=body.is_anonymous,
    )
    logger.info("feedback_received", rating=body.rating, anonymous=body.is_anonymous)
    return FeedbackResponse.model_validate(feedback)


@router.get("/feedback", response_model=list[FeedbackResponse])
async def list_feedback(
    user: User = Depends(get_current_user),  # noqa: B008
    storage: Storage = Depends(get_storage),  # noqa: B008
) -> list[FeedbackResponse]:
    return [FeedbackResponse.model_validate(f) for f in await storage.get_user_feedback(user.id)]
