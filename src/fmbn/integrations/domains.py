"""Domain availability via RDAP.

An RDAP lookup answering 404 means the domain is unregistered. Free plans
see the core suffixes; paid plans add a second tier; premium plans (or an
explicit premium request) add the premium suffixes.
"""

from __future__ import annotations

import asyncio
import re
from typing import Any

import httpx
import structlog

from fmbn.errors import UpstreamError
from fmbn.policy import is_paid_plan, is_premium_plan

logger = structlog.get_logger()

CORE_SUFFIXES = (".com", ".net", ".org")
PAID_SUFFIXES = (".io", ".co", ".biz")
PREMIUM_SUFFIXES = (".ai", ".app")

# Typical first-year registration prices in USD.
PRICES = {
    ".com": 12.99,
    ".net": 14.99,
    ".org": 13.99,
    ".io": 39.99,
    ".co": 29.99,
    ".biz": 19.99,
    ".ai": 79.99,
    ".app": 19.99,
}


def domain_label(name: str) -> str:
    """``"Island Breeze & Co"`` -> ``"islandbreezeco"``."""
    return re.sub(r"[^a-z0-9-]", "", name.lower()).strip("-")


def suffixes_for(plan: str, include_premium: bool = False) -> tuple[str, ...]:
    suffixes = CORE_SUFFIXES
    if is_paid_plan(plan):
        suffixes += PAID_SUFFIXES
    if is_premium_plan(plan) or include_premium:
        suffixes += PREMIUM_SUFFIXES
    return suffixes


class DomainChecker:
    def __init__(
        self,
        base_url: str = "https://rdap.org/domain",
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    async def _lookup(self, client: httpx.AsyncClient, domain: str) -> bool:
        response = await client.get(f"{self.base_url}/{domain}")
        if response.status_code == 404:
            return True
        response.raise_for_status()
        return False

    async def check_availability(
        self, name: str, plan: str = "free", include_premium: bool = False
    ) -> dict[str, dict[str, Any]]:
        """Map each suffix to ``{available, price, premium}``."""
        label = domain_label(name)
        if not label:
            return {}
        suffixes = suffixes_for(plan, include_premium)
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport, follow_redirects=True
            ) as client:
                results = await asyncio.gather(*(self._lookup(client, label + s) for s in suffixes))
        except httpx.HTTPError as exc:
            logger.warning("domain_check_failed", name=label, error=str(exc))
            raise UpstreamError("Domain availability lookup failed") from exc

        return {
            suffix: {
                "available": available,
                "price": PRICES.get(suffix),
                "premium": suffix in PREMIUM_SUFFIXES,
            }
            for suffix, available in zip(suffixes, results)
        }
