"""Storage repository: one interface, in-memory and relational backends."""

from fmbn.config import Settings
from fmbn.database import get_session_factory
from fmbn.storage.base import Storage
from fmbn.storage.database import DatabaseStorage
from fmbn.storage.memory import MemStorage

__all__ = ["DatabaseStorage", "MemStorage", "Storage", "build_storage"]


def build_storage(settings: Settings) -> Storage:
    """Pick the backend named by ``settings.storage_backend``.

    The database backend needs :func:`fmbn.database.init_db` to have run.
    """
    if settings.storage_backend == "memory":
        return MemStorage(currency=settings.default_currency)
    if settings.storage_backend == "database":
        return DatabaseStorage(get_session_factory(), currency=settings.default_currency)
    msg = f"Unknown storage backend: {settings.storage_backend!r}"
    raise ValueError(msg)
