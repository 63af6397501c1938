"""Health endpoint tests."""

from __future__ import annotations

from pathlib import Path

from httpx import ASGITransport, AsyncClient

from fmbn.config import Settings
from fmbn.main import create_app
from fmbn.storage import MemStorage
from tests.conftest import _sqlite_storage


async def test_health(client: AsyncClient) -> None:
    """GET /health returns 200 with healthy status."""
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


async def test_readiness_memory(client: AsyncClient) -> None:
    response = await client.get("/ready")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ready"
    assert data["checks"] == {"storage": "ok"}
    assert data["chat"] == {"participants": 0, "pending_tasks": 0}


async def test_readiness_database(settings: Settings, tmp_path: Path) -> None:
    store, engine = await _sqlite_storage(tmp_path / "ready.db")
    app = create_app(settings.model_copy(update={"storage_backend": "database"}), store)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        data = (await ac.get("/ready")).json()
    await engine.dispose()
    assert data["status"] == "ready"
    assert data["checks"] == {"database": "ok"}


async def test_readiness_degraded_when_redis_down(settings: Settings, storage: MemStorage) -> None:
    """Redis is configured but never initialised, so its check fails."""
    app = create_app(settings.model_copy(update={"redis_url": "redis://localhost:6399/0"}), storage)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        response = await ac.get("/ready")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "degraded"
    assert data["checks"]["storage"] == "ok"
    assert data["checks"]["redis"].startswith("error:")


async def test_version(client: AsyncClient) -> None:
    response = await client.get("/version")
    assert response.status_code == 200
    assert response.json() == {"version": "0.1.0", "environment": "development", "storage": "memory"}
