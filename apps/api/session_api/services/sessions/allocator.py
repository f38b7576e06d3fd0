from __future__ import annotations

import json
import logging
import math
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from session_api.core.config import Settings
from session_api.core.metrics import observe_allocation, observe_code_collision
from session_api.services.sessions.code import (
    DEFAULT_ALPHABET,
    DEFAULT_CODE_LENGTH,
    code_space_size,
    generate_code,
)
from session_api.services.sessions.errors import (
    AllocationExhaustedError,
    StoreUnavailableError,
    ValidationError,
)
from session_api.services.sessions.types import (
    AttemptOutcome,
    Collision,
    Reserved,
    SessionTicket,
    StoreFailed,
    ensure_utc,
)
from session_api.storage.base import SessionStore

logger = logging.getLogger("swipe.api")

CodeGenerator = Callable[[int, str], str]


@dataclass(frozen=True)
class AllocatorConfig:
    code_length: int = DEFAULT_CODE_LENGTH
    alphabet: str = DEFAULT_ALPHABET
    max_attempts: int = 8
    key_prefix: str = "session"

    def __post_init__(self) -> None:
        if self.code_length < 0:
            raise ValueError("code_length must be >= 0")
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if not self.alphabet or len(set(self.alphabet)) != len(self.alphabet):
            raise ValueError("alphabet must be non-empty with unique symbols")
        # Lookups upper-case typed codes, so issued codes must already be upper-case.
        if self.alphabet != self.alphabet.upper():
            raise ValueError("alphabet must not contain lowercase symbols")

    @classmethod
    def from_settings(cls, settings: Settings) -> AllocatorConfig:
        return cls(
            code_length=settings.SESSION_CODE_LENGTH,
            alphabet=settings.SESSION_CODE_ALPHABET,
            max_attempts=settings.SESSION_CODE_MAX_ATTEMPTS,
            key_prefix=settings.SESSION_KEY_PREFIX,
        )


def utcnow() -> datetime:
    return datetime.now(UTC)


def parse_expires_at(value: datetime | str | None) -> datetime:
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValidationError("expiresAt required")
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.strip())
        except ValueError as e:
            raise ValidationError(f"expiresAt is not a valid timestamp: {value!r}") from e
    else:
        raise ValidationError("expiresAt must be an ISO-8601 timestamp")
    # Offsets can push a value just outside datetime's year 1..9999 range.
    try:
        return ensure_utc(parsed)
    except (ValueError, OverflowError) as e:
        raise ValidationError(f"expiresAt is out of range: {value!r}") from e


class SessionAllocator:
    """Reserves unique short session codes against a shared TTL store.

    The allocator keeps no state between calls; concurrent callers are kept
    apart solely by the store's atomic set-if-absent. Each call draws fresh
    codes until one reserves or `max_attempts` collide.
    """

    def __init__(
        self,
        *,
        store: SessionStore,
        config: AllocatorConfig | None = None,
        generate: CodeGenerator = generate_code,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._store = store
        self._config = config or AllocatorConfig()
        self._generate = generate
        self._clock = clock

    @property
    def config(self) -> AllocatorConfig:
        return self._config

    def key_for(self, code: str) -> str:
        return f"{self._config.key_prefix}:{code}"

    def allocate(
        self,
        *,
        expires_at: datetime | str | None,
        payload: dict[str, Any] | None = None,
    ) -> SessionTicket:
        now = ensure_utc(self._clock())
        try:
            expiry = parse_expires_at(expires_at)
            ttl_seconds = _ttl_seconds(expiry, now=now)
        except ValidationError:
            observe_allocation(outcome="invalid", attempts=0)
            raise

        for attempt in range(1, self._config.max_attempts + 1):
            outcome = self._attempt(
                now=now, expires_at=expiry, payload=payload, ttl_seconds=ttl_seconds
            )
            if isinstance(outcome, Reserved):
                observe_allocation(outcome="allocated", attempts=attempt)
                _log_event(
                    logging.INFO,
                    "session.allocated",
                    code=outcome.ticket.code,
                    attempts=attempt,
                    ttl_seconds=ttl_seconds,
                )
                return outcome.ticket
            if isinstance(outcome, StoreFailed):
                observe_allocation(outcome="store_unavailable", attempts=attempt)
                _log_event(
                    logging.ERROR,
                    "session.store_unavailable",
                    exc_info=outcome.error,
                    attempt=attempt,
                )
                raise outcome.error
            observe_code_collision()
            logger.debug("session code collision on attempt %d: %s", attempt, outcome.code)

        observe_allocation(outcome="exhausted", attempts=self._config.max_attempts)
        _log_event(
            logging.WARNING,
            "session.allocation_exhausted",
            attempts=self._config.max_attempts,
            code_space=code_space_size(self._config.code_length, self._config.alphabet),
        )
        raise AllocationExhaustedError(attempts=self._config.max_attempts)

    def _attempt(
        self,
        *,
        now: datetime,
        expires_at: datetime,
        payload: dict[str, Any] | None,
        ttl_seconds: int,
    ) -> AttemptOutcome:
        code = self._generate(self._config.code_length, self._config.alphabet)
        ticket = SessionTicket(code=code, created_at=now, expires_at=expires_at, payload=payload)
        try:
            result = self._store.reserve_if_absent(
                key=self.key_for(code),
                value=ticket.to_record(),
                ttl_seconds=ttl_seconds,
            )
        except StoreUnavailableError as e:
            return StoreFailed(error=e)
        if result.reserved:
            return Reserved(ticket=ticket)
        return Collision(code=code)


def _ttl_seconds(expires_at: datetime, *, now: datetime) -> int:
    if expires_at <= now:
        raise ValidationError("expiresAt must be in the future")
    ttl = math.floor((expires_at - now).total_seconds())
    if ttl <= 0:
        raise ValidationError("expiresAt must be in the future")
    return ttl


def _log_event(
    level: int, event: str, *, exc_info: BaseException | None = None, **fields: Any
) -> None:
    logger.log(
        level,
        json.dumps({"event": event, **fields}, separators=(",", ":"), sort_keys=True),
        exc_info=exc_info,
    )
