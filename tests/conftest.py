"""Shared test fixtures."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from pathlib import Path
from typing import Any

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from fmbn.config import Settings
from fmbn.db import models  # noqa: F401
from fmbn.db.base import Base
from fmbn.dependencies import get_domain_checker, get_name_generator, get_social_checker
from fmbn.integrations import NameGenerator
from fmbn.main import create_app
from fmbn.policy import BusinessPolicy
from fmbn.seed import seed_demo_data
from fmbn.storage import DatabaseStorage, MemStorage, Storage


class FakeDomainChecker:
    """Every suffix the plan unlocks is available at a fixed price."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, str, bool]] = []

    async def check_availability(self, name: str, plan: str = "free", include_premium: bool = False) -> dict[str, Any]:
        self.calls.append((name, plan, include_premium))
        suffixes = [".com", ".net", ".org"]
        if include_premium:
            suffixes.append(".ai")
        return {s: {"available": True, "price": "12.99", "premium": s == ".ai"} for s in suffixes}


class FakeSocialChecker:
    async def check_availability(self, name: str) -> dict[str, Any]:
        handle = name.lower().replace(" ", "")
        return {"instagram": {"available": True, "handle": handle}, "x": {"available": False, "handle": handle}}


@pytest.fixture
def settings() -> Settings:
    """Memory backend, no Redis, no promotional window, fast chat timers."""
    return Settings(
        _env_file=None,
        storage_backend="memory",
        redis_url="",
        seed_demo_data=True,
        promotional_window_start=None,
        promotional_window_end=None,
        chat_welcome_followup_seconds=0.05,
        chat_welcome_reset_seconds=0.2,
        log_format="console",
    )


@pytest.fixture
def policy(settings: Settings) -> BusinessPolicy:
    return BusinessPolicy.from_settings(settings)


@pytest_asyncio.fixture
async def storage(settings: Settings) -> MemStorage:
    """Memory storage with the demo user and product catalogue."""
    store = MemStorage(currency=settings.default_currency)
    await seed_demo_data(store, settings)
    return store


@pytest.fixture
def domain_checker() -> FakeDomainChecker:
    return FakeDomainChecker()


@pytest.fixture
def app(settings: Settings, storage: MemStorage, domain_checker: FakeDomainChecker) -> FastAPI:
    application = create_app(settings, storage)
    application.dependency_overrides[get_name_generator] = lambda: NameGenerator(seed=7)
    application.dependency_overrides[get_domain_checker] = lambda: domain_checker
    application.dependency_overrides[get_social_checker] = lambda: FakeSocialChecker()
    return application


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client. ASGITransport skips the lifespan; storage is injected."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest_asyncio.fixture
async def demo_user(storage: MemStorage, settings: Settings) -> models.User:
    user = await storage.get_user_by_email(settings.demo_user_email)
    assert user is not None
    return user


async def _sqlite_storage(path: Path) -> tuple[DatabaseStorage, Any]:
    engine = create_async_engine(f"sqlite+aiosqlite:///{path}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    return DatabaseStorage(async_sessionmaker(engine, expire_on_commit=False), currency="USD"), engine


@pytest_asyncio.fixture(params=["memory", "database"])
async def any_storage(request: pytest.FixtureRequest, tmp_path: Path) -> AsyncGenerator[Storage, None]:
    """Each storage backend in turn, empty."""
    if request.param == "memory":
        yield MemStorage()
        return
    store, engine = await _sqlite_storage(tmp_path / "fmbn.db")
    yield store
    await store.close()
    await engine.dispose()
