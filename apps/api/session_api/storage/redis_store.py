from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import orjson
import redis
from redis.backoff import NoBackoff
from redis.exceptions import RedisError
from redis.retry import Retry

from session_api.storage.base import ReserveResult, SessionStore, StoreUnavailableError


@dataclass(frozen=True)
class RedisConfig:
    url: str
    timeout_seconds: float


class RedisSessionStore(SessionStore):
    def __init__(self, config: RedisConfig | None = None, *, client: Any | None = None) -> None:
        if client is None:
            if config is None:
                raise ValueError("RedisSessionStore needs a config or a client")
            # No client-side retries: a timed-out round-trip surfaces as unavailable.
            client = redis.Redis.from_url(
                config.url,
                socket_timeout=config.timeout_seconds,
                socket_connect_timeout=config.timeout_seconds,
                retry=Retry(NoBackoff(), 0),
            )
        self._client = client

    def reserve_if_absent(
        self, *, key: str, value: dict[str, Any], ttl_seconds: int
    ) -> ReserveResult:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        try:
            ok = self._client.set(key, orjson.dumps(value), nx=True, ex=ttl_seconds)
        except RedisError as e:
            raise StoreUnavailableError(str(e)) from e
        # redis-py returns True on write and None when NX blocked it.
        return ReserveResult(reserved=bool(ok))

    def get(self, *, key: str) -> dict[str, Any] | None:
        try:
            raw = self._client.get(key)
        except RedisError as e:
            raise StoreUnavailableError(str(e)) from e
        if raw is None:
            return None
        try:
            data = orjson.loads(raw)
        except orjson.JSONDecodeError as e:
            raise StoreUnavailableError(f"corrupt record at {key}") from e
        if not isinstance(data, dict):
            raise StoreUnavailableError(f"unexpected record type at {key}")
        return data

    def ping(self) -> None:
        try:
            self._client.ping()
        except RedisError as e:
            raise StoreUnavailableError(str(e)) from e
