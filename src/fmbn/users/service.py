"""Account helpers shared by the referral and payment flows."""

from __future__ import annotations

import re

from fmbn.db.models import User
from fmbn.storage import Storage
from fmbn.storage.codes import random_suffix


async def username_from_email(storage: Storage, email: str) -> str:
    """Local part of ``email``, suffixed until it is free."""
    base = re.sub(r"[^A-Za-z0-9_.-]", "", email.split("@", 1)[0]) or "user"
    candidate = base
    for _ in range(10):
        if await storage.get_user_by_username(candidate) is None:
            return candidate
        candidate = f"{base}_{random_suffix(4).lower()}"
    raise RuntimeError("Failed to generate unique username after 10 attempts")


async def find_or_create_user(storage: Storage, email: str, plan: str = "free") -> tuple[User, bool]:
    """Returns ``(user, created)``."""
    user = await storage.get_user_by_email(email)
    if user is not None:
        return user, False
    username = await username_from_email(storage, email)
    return await storage.create_user(username, email, plan), True
