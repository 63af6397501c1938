"""Request/response schemas for account, profile and feedback endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import Field, field_validator

from fmbn.schemas import CamelModel


# ---------------------------------------------------------------------------
# Account
# ---------------------------------------------------------------------------


class UserResponse(CamelModel):
    id: int
    username: str
    email: str
    plan: str
    daily_usage: int
    last_usage_reset: datetime
    brand_analysis_usage: int
    name_improvement_usage: int
    created_at: datetime


class UserUsageResponse(UserResponse):
    """Account plus quota summary."""

    usage_today: int
    usage_limit: int
    remaining_usage: int


class InitDemoResponse(CamelModel):
    message: str
    user: UserResponse


# ---------------------------------------------------------------------------
# Profile
# ---------------------------------------------------------------------------


class ProfileRequest(CamelModel):
    """Create-or-update body; omitted fields are left untouched on update."""

    display_name: str | None = Field(None, max_length=100)
    bio: str | None = None
    business_name: str | None = Field(None, max_length=200)
    business_stage: str | None = Field(None, max_length=50)
    industry: str | None = Field(None, max_length=100)
    location: str | None = Field(None, max_length=100)
    website: str | None = Field(None, max_length=255)
    linkedin_url: str | None = Field(None, max_length=255)
    twitter_handle: str | None = Field(None, max_length=50)
    instagram_handle: str | None = Field(None, max_length=50)
    interests: list[str] | None = None
    looking_for: str | None = None
    can_help: str | None = None
    is_public: bool | None = None


class ProfileResponse(CamelModel):
    id: int
    user_id: int
    display_name: str | None
    bio: str | None
    business_name: str | None
    business_stage: str | None
    industry: str | None
    location: str | None
    website: str | None
    linkedin_url: str | None
    twitter_handle: str | None
    instagram_handle: str | None
    interests: list[str] = []
    looking_for: str | None
    can_help: str | None
    is_public: bool
    created_at: datetime
    updated_at: datetime


# ---------------------------------------------------------------------------
# Feedback
# ---------------------------------------------------------------------------


class FeedbackRequest(CamelModel):
    rating: int = Field(..., ge=1, le=5)
    category: str | None = Field(None, max_length=50)
    message: str | None = Field(None, max_length=5000)
    is_anonymous: bool = False

    @field_validator("message")
    @classmethod
    def strip_message(cls, v: str | None) -> str | None:
        return v.strip() if v else v


class FeedbackResponse(CamelModel):
    id: int
    user_id: int | None
    rating: int
    category: str | None
    message: str | None
    user_agent: str | None
    url: str | None
    is_anonymous: bool
    created_at: datetime
