"""Request/response schemas for name generation and name checks."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import Field, field_validator, model_validator

from fmbn.schemas import CamelModel


class GenerateNamesRequest(CamelModel):
    """Either ``description`` (generate) or ``specific_name`` (check one name) is required."""

    description: str | None = Field(None, max_length=1000)
    specific_name: str | None = Field(None, max_length=200)
    industry: str | None = Field(None, max_length=100)
    style: str | None = Field(None, max_length=50)
    check_domains: bool = True
    check_premium_domains: bool = False
    include_synonyms: bool = False

    @model_validator(mode="after")
    def require_description_or_name(self) -> GenerateNamesRequest:
        if not (self.description or "").strip() and not (self.specific_name or "").strip():
            raise ValueError("Either description or specificName is required")
        return self


class GeneratedNameResponse(CamelModel):
    id: int
    name: str
    description: str | None
    industry: str | None
    style: str | None
    domains: dict[str, Any] = {}
    is_favorite: bool
    created_at: datetime


class GenerateNamesResponse(CamelModel):
    names: list[GeneratedNameResponse]
    remaining_usage: int


class ToggleFavoriteRequest(CamelModel):
    name_id: int


class SearchHistoryResponse(CamelModel):
    id: int
    query: str
    industry: str | None
    style: str | None
    created_at: datetime


class BusinessNameRequest(CamelModel):
    business_name: str = Field(..., max_length=200)
    industry: str | None = Field(None, max_length=100)
    include_premium: bool = False

    @field_validator("business_name")
    @classmethod
    def at_least_two_chars(cls, v: str) -> str:
        v = v.strip()
        if len(v) < 2:
            raise ValueError("Business name must be at least 2 characters")
        return v
