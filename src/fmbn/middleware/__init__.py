"""Middleware registration."""

from fastapi import FastAPI

from fmbn.config import Settings
from fmbn.middleware.cors import setup_cors
from fmbn.middleware.error_handler import setup_error_handlers
from fmbn.middleware.logging import setup_logging
from fmbn.middleware.rate_limit import RateLimitMiddleware
from fmbn.middleware.request_id import RequestIdMiddleware


def setup_middleware(app: FastAPI, settings: Settings) -> None:
    """Register all middleware.

    Starlette runs middleware in reverse-add order, so CORS is added last to
    wrap everything else, including 429 responses.
    """
    setup_logging(settings)
    setup_error_handlers(app)
    app.add_middleware(
        RateLimitMiddleware,
        requests_per_window=settings.rate_limit_requests,
        window_seconds=settings.rate_limit_window_seconds,
    )
    app.add_middleware(RequestIdMiddleware)
    setup_cors(app, settings)
