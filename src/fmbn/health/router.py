"""Health, readiness, and version endpoints."""

from fastapi import APIRouter, Depends, Request

from fmbn.config import Settings
from fmbn.dependencies import get_app_settings, get_storage
from fmbn.redis_client import get_redis
from fmbn.storage import DatabaseStorage, Storage

router = APIRouter()


@router.get("/health")
async def health() -> dict[str, str]:
    """Liveness probe. Returns 200 if the process is alive."""
    return {"status": "healthy"}


@router.get("/ready")
async def readiness(
    request: Request,
    storage: Storage = Depends(get_storage),  # noqa: B008
    settings: Settings = Depends(get_app_settings),  # noqa: B008
) -> dict[str, object]:
    """Readiness probe. Checks storage and Redis connectivity."""
    checks: dict[str, object] = {}

    # Storage check
    if isinstance(storage, DatabaseStorage):
        try:
            await storage.ping()
            checks["database"] = "ok"
        except Exception as exc:
            checks["database"] = f"error: {exc}"
    else:
        checks["storage"] = "ok"

    # Redis check, only when configured
    if settings.redis_url:
        try:
            redis = get_redis()
            await redis.ping()
            checks["redis"] = "ok"
        except Exception as exc:
            checks["redis"] = f"error: {exc}"

    all_ok = all(v == "ok" for v in checks.values())
    return {
        "status": "ready" if all_ok else "degraded",
        "checks": checks,
        "chat": request.app.state.chat.get_stats(),
    }


@router.get("/version")
async def version(settings: Settings = Depends(get_app_settings)) -> dict[str, str]:  # noqa: B008
    """Return API version, environment and storage backend."""
    return {
        "version": settings.app_version,
        "environment": settings.environment,
        "storage": settings.storage_backend,
    }
