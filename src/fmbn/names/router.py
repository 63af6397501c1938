"""Name generation, favorites, history and name-check endpoints."""

from __future__ import annotations

import asyncio
import csv
import io
from typing import Any

import structlog
from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse, Response

from fmbn.db.models import User
from fmbn.dependencies import (
    get_brand_analyzer,
    get_current_user,
    get_domain_checker,
    get_name_generator,
    get_policy,
    get_social_checker,
    get_storage,
)
from fmbn.integrations import BrandAnalyzer, DomainChecker, NameGenerator, SocialMediaChecker
from fmbn.names.schemas import (
    BusinessNameRequest,
    GeneratedNameResponse,
    GenerateNamesRequest,
    GenerateNamesResponse,
    SearchHistoryResponse,
    ToggleFavoriteRequest,
)
from fmbn.names.service import generate_names
from fmbn.policy import BusinessPolicy
from fmbn.schemas import SuccessResponse
from fmbn.storage import Storage
from fmbn.storage.base import utcnow

logger = structlog.get_logger()

router = APIRouter(prefix="/api", tags=["Names"])


# ---------------------------------------------------------------------------
# Generation
# ---------------------------------------------------------------------------


@router.post("/generate-names", response_model=GenerateNamesResponse)
async def generate(
    body: GenerateNamesRequest,
    user: User = Depends(get_current_user),  # noqa: B008
    storage: Storage = Depends(get_storage),  # noqa: B008
    policy: BusinessPolicy = Depends(get_policy),  # noqa: B008
    generator: NameGenerator = Depends(get_name_generator),  # noqa: B008
    domain_checker: DomainChecker = Depends(get_domain_checker),  # noqa: B008
) -> GenerateNamesResponse:
    result = await generate_names(storage, policy, user, body, generator, domain_checker)
    return GenerateNamesResponse(
        names=[GeneratedNameResponse.model_validate(n) for n in result.names],
        remaining_usage=result.remaining_usage,
    )


@router.get("/generated-names", response_model=list[GeneratedNameResponse])
async def list_generated_names(
    user: User = Depends(get_current_user),  # noqa: B008
    storage: Storage = Depends(get_storage),  # noqa: B008
) -> list[GeneratedNameResponse]:
    return [GeneratedNameResponse.model_validate(n) for n in await storage.get_user_generated_names(user.id)]


@router.get("/search-history", response_model=list[SearchHistoryResponse])
async def search_history(
    user: User = Depends(get_current_user),  # noqa: B008
    storage: Storage = Depends(get_storage),  # noqa: B008
) -> list[SearchHistoryResponse]:
    return [SearchHistoryResponse.model_validate(h) for h in await storage.get_user_search_history(user.id)]


# ---------------------------------------------------------------------------
# Favorites
# ---------------------------------------------------------------------------


@router.post("/favorites/toggle", response_model=SuccessResponse)
async def toggle_favorite(
    body: ToggleFavoriteRequest,
    user: User = Depends(get_current_user),  # noqa: B008
    storage: Storage = Depends(get_storage),  # noqa: B008
) -> SuccessResponse:
    """Names owned by someone else are left alone; the call still succeeds."""
    await storage.toggle_favorite(user.id, body.name_id)
    return SuccessResponse()


@router.get("/favorites", response_model=list[GeneratedNameResponse])
async def list_favorites(
    user: User = Depends(get_current_user),  # noqa: B008
    storage: Storage = Depends(get_storage),  # noqa: B008
) -> list[GeneratedNameResponse]:
    return [GeneratedNameResponse.model_validate(n) for n in await storage.get_user_favorites(user.id)]


@router.get("/favorites/export")
async def export_favorites(
    format: str = Query("json", pattern="^(json|csv)$"),  # noqa: A002
    user: User = Depends(get_current_user),  # noqa: B008
    storage: Storage = Depends(get_storage),  # noqa: B008
) -> Response:
    """Download favorites as CSV or JSON."""
    favorites = await storage.get_user_favorites(user.id)
    logger.info("favorites_exported", user_id=user.id, format=format, count=len(favorites))
    if format == "csv":
        buffer = io.StringIO()
        writer = csv.writer(buffer, quoting=csv.QUOTE_ALL)
        writer.writerow(["Name", "Industry", "Style", "Available Domains", "Created At"])
        for fav in favorites:
            available = ";".join(d for d, status in (fav.domains or {}).items() if status.get("available"))
            writer.writerow([fav.name, fav.industry or "", fav.style or "", available, fav.created_at.isoformat()])
        return Response(
            content=buffer.getvalue(),
            media_type="text/csv",
            headers={"Content-Disposition": 'attachment; filename="business-names.csv"'},
        )
    payload = [GeneratedNameResponse.model_validate(f).model_dump(mode="json", by_alias=True) for f in favorites]
    return JSONResponse(
        content=payload,
        headers={"Content-Disposition": 'attachment; filename="business-names.json"'},
    )


# ---------------------------------------------------------------------------
# Name checks
# ---------------------------------------------------------------------------


@router.post("/check-domains")
async def check_domains(
    body: BusinessNameRequest,
    user: User = Depends(get_current_user),  # noqa: B008
    domain_checker: DomainChecker = Depends(get_domain_checker),  # noqa: B008
) -> dict[str, Any]:
    domains = await domain_checker.check_availability(body.business_name, user.plan, body.include_premium)
    return {"domains": domains}


@router.post("/check-social-media")
async def check_social_media(
    body: BusinessNameRequest,
    social_checker: SocialMediaChecker = Depends(get_social_checker),  # noqa: B008
) -> dict[str, Any]:
    return {"socialMedia": await social_checker.check_availability(body.business_name)}


@router.post("/analyze-brand")
async def analyze_brand(
    body: BusinessNameRequest,
    user: User = Depends(get_current_user),  # noqa: B008
    storage: Storage = Depends(get_storage),  # noqa: B008
    analyzer: BrandAnalyzer = Depends(get_brand_analyzer),  # noqa: B008
) -> dict[str, Any]:
    analysis = await analyzer.analyze(body.business_name, body.industry)
    await storage.update_premium_feature_usage(user.id, "brand_analysis")
    return {"analysis": analysis}


@router.post("/analyze-name-complete")
async def analyze_name_complete(
    body: BusinessNameRequest,
    user: User = Depends(get_current_user),  # noqa: B008
    domain_checker: DomainChecker = Depends(get_domain_checker),  # noqa: B008
    social_checker: SocialMediaChecker = Depends(get_social_checker),  # noqa: B008
    analyzer: BrandAnalyzer = Depends(get_brand_analyzer),  # noqa: B008
) -> dict[str, Any]:
    """Domains, social handles and brand analysis for one name, looked up concurrently."""
    domains, social, analysis = await asyncio.gather(
        domain_checker.check_availability(body.business_name, user.plan, body.include_premium),
        social_checker.check_availability(body.business_name),
        analyzer.analyze(body.business_name, body.industry),
    )
    return {
        "name": body.business_name,
        "domains": domains,
        "socialMedia": social,
        "brandAnalysis": analysis,
        "timestamp": utcnow().isoformat(),
    }
