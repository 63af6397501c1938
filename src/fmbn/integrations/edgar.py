"""SEC EDGAR company lookups.

Uses the public ticker index for search and the submissions API for
company profiles. SEC requires a descriptive User-Agent on every request.
"""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from fmbn.errors import UpstreamError

logger = structlog.get_logger()

TRENDING_TICKERS = ("AAPL", "MSFT", "NVDA", "AMZN", "GOOGL", "META", "TSLA", "BRK-B", "JPM", "V",
                    "WMT", "MA", "COST", "NFLX", "DIS", "KO", "PEP", "NKE", "SBUX", "SHOP")


def pad_cik(cik: int | str) -> str:
    return str(int(cik)).zfill(10)


class EdgarClient:
    def __init__(
        self,
        user_agent: str,
        tickers_url: str = "https://www.sec.gov/files/company_tickers.json",
        submissions_url: str = "https://data.sec.gov/submissions",
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.user_agent = user_agent
        self.tickers_url = tickers_url
        self.submissions_url = submissions_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport
        self._tickers: list[dict[str, Any]] | None = None

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.timeout,
            transport=self._transport,
            headers={"User-Agent": self.user_agent, "Accept": "application/json"},
        )

    async def _load_tickers(self) -> list[dict[str, Any]]:
        if self._tickers is None:
            try:
                async with self._client() as client:
                    response = await client.get(self.tickers_url)
                    response.raise_for_status()
                    payload = response.json()
            except (httpx.HTTPError, ValueError) as exc:
                raise UpstreamError("SEC EDGAR ticker index unavailable") from exc
            self._tickers = [
                {"cik": pad_cik(row["cik_str"]), "ticker": row["ticker"], "name": row["title"]}
                for row in payload.values()
            ]
            logger.info("edgar_tickers_loaded", count=len(self._tickers))
        return self._tickers

    async def search(self, query: str, limit: int = 20) -> list[dict[str, Any]]:
        """Companies whose name or ticker contains ``query``; exact ticker matches first."""
        needle = query.strip().lower()
        if not needle:
            return []
        tickers = await self._load_tickers()
        matches = [c for c in tickers if needle in c["name"].lower() or needle == c["ticker"].lower()]
        matches.sort(key=lambda c: (c["ticker"].lower() != needle, not c["name"].lower().startswith(needle)))
        return matches[:limit]

    async def trending(self, limit: int = 10) -> list[dict[str, Any]]:
        tickers = {c["ticker"]: c for c in await self._load_tickers()}
        return [tickers[t] for t in TRENDING_TICKERS if t in tickers][:limit]

    async def get_profile(self, cik: int | str) -> dict[str, Any] | None:
        """Company profile from the submissions API, or ``None`` if SEC has no such CIK."""
        padded = pad_cik(cik)
        try:
            async with self._client() as client:
                response = await client.get(f"{self.submissions_url}/CIK{padded}.json")
                if response.status_code == 404:
                    return None
                response.raise_for_status()
                data = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise UpstreamError("SEC EDGAR profile unavailable") from exc

        business = (data.get("addresses") or {}).get("business") or {}
        return {
            "cik": padded,
            "name": data.get("name"),
            "tickers": data.get("tickers", []),
            "exchanges": data.get("exchanges", []),
            "sic": data.get("sic"),
            "industry": data.get("sicDescription"),
            "stateOfIncorporation": data.get("stateOfIncorporation"),
            "fiscalYearEnd": data.get("fiscalYearEnd"),
            "website": data.get("website") or None,
            "phone": data.get("phone"),
            "address": {
                "street": business.get("street1"),
                "city": business.get("city"),
                "state": business.get("stateOrCountry"),
                "zip": business.get("zipCode"),
            },
        }
