from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any


def isoformat_utc(value: datetime) -> str:
    # Millisecond precision with a `Z` suffix, the shape JS `toISOString()` emits.
    return value.astimezone(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def ensure_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


@dataclass(frozen=True)
class SessionTicket:
    code: str
    created_at: datetime
    expires_at: datetime
    payload: dict[str, Any] | None = None

    def to_record(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "createdAt": isoformat_utc(self.created_at),
            "expiresAt": isoformat_utc(self.expires_at),
            "payload": self.payload,
        }


# Per-attempt outcomes inside the allocation loop. A collision is ordinary
# control flow; only a store failure stops the loop early.
@dataclass(frozen=True)
class Reserved:
    ticket: SessionTicket


@dataclass(frozen=True)
class Collision:
    code: str


@dataclass(frozen=True)
class StoreFailed:
    error: Exception


AttemptOutcome = Reserved | Collision | StoreFailed
