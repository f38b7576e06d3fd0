from __future__ import annotations

from fastapi import Depends

from session_api.core.config import get_settings
from session_api.services.sessions.allocator import AllocatorConfig, SessionAllocator
from session_api.storage.base import SessionStore
from session_api.storage.factory import get_session_store


def require_store() -> SessionStore:
    # Indirection so tests can swap the store via `app.dependency_overrides`.
    return get_session_store()


def require_allocator_config() -> AllocatorConfig:
    return AllocatorConfig.from_settings(get_settings())


def require_allocator(
    store: SessionStore = Depends(require_store),
    config: AllocatorConfig = Depends(require_allocator_config),
) -> SessionAllocator:
    return SessionAllocator(store=store, config=config)
