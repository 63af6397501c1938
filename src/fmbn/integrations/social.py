"""Social handle availability by probing public profile URLs."""

from __future__ import annotations

import asyncio
import re
from typing import Any

import httpx
import structlog

from fmbn.errors import UpstreamError

logger = structlog.get_logger()

PLATFORMS = {
    "instagram": "https://www.instagram.com/{handle}/",
    "twitter": "https://x.com/{handle}",
    "facebook": "https://www.facebook.com/{handle}",
    "linkedin": "https://www.linkedin.com/company/{handle}",
    "tiktok": "https://www.tiktok.com/@{handle}",
    "youtube": "https://www.youtube.com/@{handle}",
}


def handle_for(name: str) -> str:
    return re.sub(r"[^a-z0-9_]", "", name.lower())[:30]


class SocialMediaChecker:
    def __init__(self, timeout: float = 10.0, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self.timeout = timeout
        self._transport = transport

    async def _probe(self, client: httpx.AsyncClient, platform: str, handle: str) -> dict[str, Any]:
        url = PLATFORMS[platform].format(handle=handle)
        try:
            response = await client.get(url)
        except httpx.HTTPError as exc:
            logger.info("social_probe_failed", platform=platform, error=str(exc))
            return {"available": False, "note": "Could not verify", "error": True}
        if response.status_code == 404:
            return {"available": True}
        if response.status_code < 400:
            return {"available": False, "url": url}
        return {"available": False, "note": f"Could not verify (HTTP {response.status_code})"}

    async def check_availability(self, name: str) -> dict[str, dict[str, Any]]:
        """Map each platform to ``{available, url?, note?}``."""
        handle = handle_for(name)
        async with httpx.AsyncClient(
            timeout=self.timeout, transport=self._transport, follow_redirects=True
        ) as client:
            results = await asyncio.gather(*(self._probe(client, p, handle) for p in PLATFORMS))
        failures = [r.pop("error", False) for r in results]
        if all(failures):
            raise UpstreamError("Social media lookup failed")
        return dict(zip(PLATFORMS, results))
