"""Name generation flow: quota check, generation, domain lookups, persistence."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime
from typing import Any

import structlog

from fmbn.db.models import GeneratedName, User
from fmbn.errors import EntitlementError
from fmbn.integrations import DomainChecker, NameGenerator
from fmbn.names.schemas import GenerateNamesRequest
from fmbn.policy import BusinessPolicy
from fmbn.storage import Storage
from fmbn.storage.base import utcnow

logger = structlog.get_logger()


@dataclass
class GenerationResult:
    names: list[GeneratedName]
    remaining_usage: int
    user: User


def _new_month(last_reset: datetime, now: datetime) -> bool:
    return (last_reset.year, last_reset.month) != (now.year, now.month)


async def generate_names(
    storage: Storage,
    policy: BusinessPolicy,
    user: User,
    request: GenerateNamesRequest,
    generator: NameGenerator,
    domain_checker: DomainChecker,
    now: datetime | None = None,
) -> GenerationResult:
    """Run one generation for ``user``; counts against their monthly quota.

    Raises EntitlementError when the quota is used up or a paid feature is
    requested on the free plan.
    """
    now = now or utcnow()
    if _new_month(user.last_usage_reset, now):
        user = await storage.reset_daily_usage(user.id)

    limit = policy.monthly_limit(user.plan, now)
    used = user.daily_usage
    if limit is not None and used >= limit:
        raise EntitlementError(
            f"Free limit reached ({limit} per month). "
            "Upgrade to Premium for unlimited generations + advanced features!",
            remainingUsage=0,
            requiredPlan="premium",
        )
    if request.include_synonyms and user.plan == "free":
        raise EntitlementError(
            "Synonyms feature requires Premium subscription. Upgrade to unlock advanced name variations!",
            feature="synonyms",
            requiredPlan="premium",
        )

    if request.specific_name and request.specific_name.strip():
        candidates = [request.specific_name.strip()]
    else:
        candidates = await generator.generate(
            request.description or "",
            industry=request.industry,
            style=request.style,
            include_synonyms=request.include_synonyms,
            advanced=user.plan == "pro",
        )

    domain_maps: list[dict[str, Any]]
    if request.check_domains or request.check_premium_domains:
        domain_maps = list(
            await asyncio.gather(
                *(
                    domain_checker.check_availability(name, user.plan, request.check_premium_domains)
                    for name in candidates
                )
            )
        )
    else:
        domain_maps = [{} for _ in candidates]

    query = request.description or request.specific_name or ""
    saved = [
        await storage.create_generated_name(
            user.id,
            name,
            description=query,
            industry=request.industry,
            style=request.style,
            domains=domains,
        )
        for name, domains in zip(candidates, domain_maps)
    ]

    user = await storage.update_user_usage(user.id, used + 1)
    await storage.add_search_history(user.id, query, industry=request.industry, style=request.style)

    remaining = max(0, limit - (used + 1)) if limit is not None else -1
    logger.info("names_generated", user_id=user.id, count=len(saved), remaining=remaining)
    return GenerationResult(names=saved, remaining_usage=remaining, user=user)
