"""Public company lookups backed by SEC EDGAR."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Path, Query

from fmbn.dependencies import get_edgar_client
from fmbn.errors import NotFoundError
from fmbn.integrations import EdgarClient

router = APIRouter(prefix="/api/companies", tags=["Companies"])


@router.get("/search")
async def search_companies(
    q: str = Query(..., min_length=1, max_length=100),
    limit: int = Query(20, ge=1, le=100),
    edgar: EdgarClient = Depends(get_edgar_client),  # noqa: B008
) -> dict[str, Any]:
    companies = await edgar.search(q, limit)
    return {"query": q, "companies": companies, "total": len(companies)}


@router.get("/trending")
async def trending_companies(
    limit: int = Query(10, ge=1, le=20),
    edgar: EdgarClient = Depends(get_edgar_client),  # noqa: B008
) -> dict[str, Any]:
    return {"companies": await edgar.trending(limit)}


@router.get("/{cik}")
async def get_company(
    cik: str = Path(..., pattern=r"^\d{1,10}$"),
    edgar: EdgarClient = Depends(get_edgar_client),  # noqa: B008
) -> dict[str, Any]:
    profile = await edgar.get_profile(cik)
    if profile is None:
        raise NotFoundError("Company not found", cik=cik)
    return profile
