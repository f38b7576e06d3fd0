from __future__ import annotations

from functools import lru_cache

from session_api.core.config import get_settings
from session_api.storage.base import SessionStore
from session_api.storage.memory import InMemorySessionStore
from session_api.storage.redis_store import RedisConfig, RedisSessionStore


def build_session_store() -> SessionStore:
    settings = get_settings()
    if settings.SESSION_STORE == "memory":
        return InMemorySessionStore()
    if settings.SESSION_STORE == "redis":
        return RedisSessionStore(
            RedisConfig(url=settings.REDIS_URL, timeout_seconds=settings.STORE_TIMEOUT_SECONDS)
        )
    raise ValueError(f"Unsupported SESSION_STORE: {settings.SESSION_STORE}")


@lru_cache(maxsize=1)
def get_session_store() -> SessionStore:
    return build_session_store()
