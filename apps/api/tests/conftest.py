from __future__ import annotations

from collections.abc import Iterator

import pytest


@pytest.fixture(autouse=True)
def _memory_store_settings(monkeypatch) -> Iterator[None]:
    # Never reach for a real Redis from unit tests.
    monkeypatch.setenv("SESSION_STORE", "memory")
    monkeypatch.setenv("APP_ENV", "test")
    monkeypatch.setenv("ENABLE_OTEL_TRACING", "false")

    from session_api.core.config import get_settings
    from session_api.storage.factory import get_session_store

    get_settings.cache_clear()
    get_session_store.cache_clear()
    yield
    get_settings.cache_clear()
    get_session_store.cache_clear()
