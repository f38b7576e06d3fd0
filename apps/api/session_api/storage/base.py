from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from session_api.services.sessions.errors import StoreUnavailableError

__all__ = ["ReserveResult", "SessionStore", "StoreUnavailableError"]


@dataclass(frozen=True)
class ReserveResult:
    reserved: bool


class SessionStore:
    """TTL-capable key space holding session ticket records.

    `reserve_if_absent` must check and write in one atomic step: a call that
    finds the key already present returns `reserved=False` and leaves the
    existing record untouched. Transport or auth failures raise
    `StoreUnavailableError` and are never reported as `reserved=False`.
    """

    def reserve_if_absent(
        self, *, key: str, value: dict[str, Any], ttl_seconds: int
    ) -> ReserveResult:  # pragma: no cover
        raise NotImplementedError

    def get(self, *, key: str) -> dict[str, Any] | None:  # pragma: no cover
        raise NotImplementedError

    def ping(self) -> None:
        return None
