from __future__ import annotations

from typing import Any

from session_api.services.sessions.allocator import AllocatorConfig
from session_api.services.sessions.errors import ValidationError
from session_api.storage.base import SessionStore


def normalize_code(raw: str, *, config: AllocatorConfig) -> str:
    # Codes are typed by hand; accept any case and surrounding whitespace.
    code = (raw or "").strip().upper()
    if len(code) != config.code_length or any(ch not in config.alphabet for ch in code):
        raise ValidationError("Invalid code")
    return code


def get_session_by_code(
    *, store: SessionStore, config: AllocatorConfig, code: str
) -> dict[str, Any] | None:
    normalized = normalize_code(code, config=config)
    return store.get(key=f"{config.key_prefix}:{normalized}")
