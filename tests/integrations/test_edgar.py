"""SEC EDGAR client against a mocked transport."""

from __future__ import annotations

import httpx
import pytest

from fmbn.errors import UpstreamError
from fmbn.integrations import EdgarClient
from fmbn.integrations.edgar import pad_cik

TICKERS = {
    "0": {"cik_str": 320193, "ticker": "AAPL", "title": "Apple Inc."},
    "1": {"cik_str": 789019, "ticker": "MSFT", "title": "MICROSOFT CORP"},
    "2": {"cik_str": 1418121, "ticker": "APLE", "title": "Apple Hospitality REIT, Inc."},
}

SUBMISSION = {
    "name": "Apple Inc.",
    "tickers": ["AAPL"],
    "exchanges": ["Nasdaq"],
    "sic": "3571",
    "sicDescription": "Electronic Computers",
    "stateOfIncorporation": "CA",
    "fiscalYearEnd": "0928",
    "website": "",
    "phone": "(408) 996-1010",
    "addresses": {
        "business": {"street1": "One Apple Park Way", "city": "Cupertino", "stateOrCountry": "CA", "zipCode": "95014"}
    },
}


class SecStub:
    def __init__(self, tickers_status: int = 200) -> None:
        self.tickers_status = tickers_status
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path == "/files/company_tickers.json":
            return httpx.Response(self.tickers_status, json=TICKERS)
        if request.url.path == "/submissions/CIK0000320193.json":
            return httpx.Response(200, json=SUBMISSION)
        return httpx.Response(404)


def _client(stub: SecStub) -> EdgarClient:
    return EdgarClient(user_agent="FMBN tests tests@example.com", transport=httpx.MockTransport(stub))


def test_pad_cik() -> None:
    assert pad_cik(320193) == "0000320193"
    assert pad_cik("0000320193") == "0000320193"


async def test_search_matches_name_and_ticker() -> None:
    stub = SecStub()
    edgar = _client(stub)

    apple = await edgar.search("apple")
    assert [c["ticker"] for c in apple] == ["AAPL", "APLE"]
    assert apple[0] == {"cik": "0000320193", "ticker": "AAPL", "name": "Apple Inc."}

    assert [c["ticker"] for c in await edgar.search("msft")] == ["MSFT"]
    assert [c["ticker"] for c in await edgar.search("apple", limit=1)] == ["AAPL"]
    assert await edgar.search("   ") == []

    # The ticker index is fetched once and cached.
    assert len(stub.requests) == 1
    assert stub.requests[0].headers["user-agent"] == "FMBN tests tests@example.com"


async def test_trending_keeps_curated_order() -> None:
    edgar = _client(SecStub())
    assert [c["ticker"] for c in await edgar.trending()] == ["AAPL", "MSFT"]
    assert [c["ticker"] for c in await edgar.trending(limit=1)] == ["AAPL"]


async def test_profile() -> None:
    profile = await _client(SecStub()).get_profile(320193)
    assert profile is not None
    assert profile["cik"] == "0000320193"
    assert profile["industry"] == "Electronic Computers"
    assert profile["website"] is None
    assert profile["address"] == {"street": "One Apple Park Way", "city": "Cupertino", "state": "CA", "zip": "95014"}


async def test_unknown_profile_is_none() -> None:
    assert await _client(SecStub()).get_profile(42) is None


async def test_ticker_index_failure() -> None:
    edgar = _client(SecStub(tickers_status=503))
    with pytest.raises(UpstreamError):
        await edgar.search("apple")
