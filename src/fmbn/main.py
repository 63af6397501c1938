"""FastAPI application factory."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI

from fmbn.companies.router import router as companies_router
from fmbn.config import Settings, get_settings
from fmbn.database import close_db, init_db
from fmbn.health.router import router as health_router
from fmbn.integrations import EdgarClient
from fmbn.middleware import setup_middleware
from fmbn.names.router import router as names_router
from fmbn.payments.router import router as payments_router
from fmbn.policy import BusinessPolicy
from fmbn.products.router import router as products_router
from fmbn.redis_client import close_redis, init_redis
from fmbn.referrals.router import router as referrals_router
from fmbn.seed import seed_demo_data
from fmbn.storage import Storage, build_storage
from fmbn.users.router import router as users_router
from fmbn.wallet.router import router as wallet_router
from fmbn.ws.manager import ChatRegistry, CommunityChat
from fmbn.ws.router import router as ws_router

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    settings: Settings = app.state.settings
    uses_database = app.state.storage is None and settings.storage_backend == "database"
    if uses_database:
        await init_db(settings.database_url)
    await init_redis(settings.redis_url)
    if app.state.storage is None:
        app.state.storage = build_storage(settings)

    if settings.seed_demo_data:
        # Seeding is best effort: the schema may not be migrated yet.
        try:
            await seed_demo_data(app.state.storage, settings)
        except Exception:
            logger.warning("demo_seed_failed", exc_info=True)

    logger.info("app_started", storage=type(app.state.storage).__name__, environment=settings.environment)

    yield

    await app.state.chat.shutdown()
    await app.state.storage.close()
    if uses_database:
        await close_db()
    await close_redis()


def create_app(settings: Settings | None = None, storage: Storage | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    ``storage`` bypasses backend selection; the lifespan builds one from
    ``settings`` otherwise.
    """
    settings = settings or get_settings()

    app = FastAPI(
        title="FindMyBizName API",
        description="Business naming, digital products, referrals, wallets and community chat",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.policy = BusinessPolicy.from_settings(settings)
    app.state.storage = storage
    app.state.chat = CommunityChat(
        ChatRegistry(),
        followup_delay=settings.chat_welcome_followup_seconds,
        reset_delay=settings.chat_welcome_reset_seconds,
    )
    app.state.edgar = EdgarClient(
        user_agent=settings.sec_user_agent,
        tickers_url=settings.sec_tickers_url,
        submissions_url=settings.sec_submissions_url,
        timeout=settings.http_timeout_seconds,
    )

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(users_router)
    app.include_router(names_router)
    app.include_router(products_router)
    app.include_router(referrals_router)
    app.include_router(wallet_router)
    app.include_router(payments_router)
    app.include_router(companies_router)
    app.include_router(ws_router)

    return app


app = create_app()
