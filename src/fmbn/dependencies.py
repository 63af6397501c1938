"""Shared FastAPI dependencies.

Everything a route needs (settings, policy, storage, the calling user and
the external collaborators) comes through here so tests can override it.
"""

from fastapi import Depends, Header, Request

from fmbn.config import Settings
from fmbn.db.models import User
from fmbn.errors import NotFoundError
from fmbn.integrations import BrandAnalyzer, DomainChecker, EdgarClient, NameGenerator, SocialMediaChecker
from fmbn.policy import BusinessPolicy
from fmbn.storage import Storage


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_policy(request: Request) -> BusinessPolicy:
    return request.app.state.policy


def get_storage(request: Request) -> Storage:
    storage = getattr(request.app.state, "storage", None)
    if storage is None:
        msg = "Storage not initialized. The application lifespan has not run."
        raise RuntimeError(msg)
    return storage


async def get_current_user(
    x_user_id: int | None = Header(default=None),
    storage: Storage = Depends(get_storage),  # noqa: B008
    settings: Settings = Depends(get_app_settings),  # noqa: B008
) -> User:
    """Resolve the caller from ``X-User-Id``, falling back to the demo account."""
    if x_user_id is not None:
        user = await storage.get_user(x_user_id)
    else:
        user = await storage.get_user_by_email(settings.demo_user_email)
    if user is None:
        raise NotFoundError("User not found")
    return user


def get_name_generator() -> NameGenerator:
    return NameGenerator()


def get_domain_checker(settings: Settings = Depends(get_app_settings)) -> DomainChecker:  # noqa: B008
    return DomainChecker(base_url=settings.rdap_base_url, timeout=settings.http_timeout_seconds)


def get_social_checker(settings: Settings = Depends(get_app_settings)) -> SocialMediaChecker:  # noqa: B008
    return SocialMediaChecker(timeout=settings.http_timeout_seconds)


def get_brand_analyzer() -> BrandAnalyzer:
    return BrandAnalyzer()


def get_edgar_client(request: Request) -> EdgarClient:
    """The app-wide client, which caches SEC's ticker index after the first search."""
    return request.app.state.edgar
