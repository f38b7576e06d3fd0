from __future__ import annotations

import string
from functools import lru_cache
from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Prefer repo-root `.env` so `docker compose` and `apps/api` share one config.
    # Keep local `.env` as a fallback for service-specific overrides.
    _REPO_ROOT = Path(__file__).resolve().parents[4]
    model_config = SettingsConfigDict(env_file=(_REPO_ROOT / ".env", ".env"), extra="ignore")

    VERSION: str = "0.1.0"
    APP_ENV: str = "dev"  # dev|test|prod

    CORS_ORIGINS: str = "http://localhost:3000"

    # Session ticket store
    SESSION_STORE: str = "redis"  # "redis" or "memory"
    REDIS_URL: str = "redis://localhost:6379/0"
    STORE_TIMEOUT_SECONDS: float = 2.0

    # Session code policy
    SESSION_KEY_PREFIX: str = "session"
    SESSION_CODE_LENGTH: int = 4
    SESSION_CODE_ALPHABET: str = string.ascii_uppercase
    SESSION_CODE_MAX_ATTEMPTS: int = 8

    REQUEST_ID_HEADER: str = "x-request-id"
    RATE_LIMIT_REQUESTS_PER_MINUTE: int = 120
    ENABLE_PROMETHEUS_METRICS: bool = True
    PROMETHEUS_METRICS_PATH: str = "/metrics"
    ENABLE_OTEL_TRACING: bool = False
    OTEL_SERVICE_NAME: str = "swipe-session-api"
    OTEL_EXPORTER_OTLP_TRACES_ENDPOINT: str = "http://localhost:4318/v1/traces"
    OTEL_EXPORTER_OTLP_HEADERS: str = ""
    OTEL_TRACE_SAMPLE_RATIO: float = 1.0
    OTEL_EXCLUDED_URLS: str = "/healthz,/readyz,/metrics"
    CONTENT_SECURITY_POLICY: str = (
        "default-src 'none'; frame-ancestors 'none'; base-uri 'none'; form-action 'none'"
    )

    @field_validator("SESSION_STORE")
    @classmethod
    def _normalize_session_store(cls, v: str) -> str:
        return v.strip().lower()

    @field_validator("STORE_TIMEOUT_SECONDS")
    @classmethod
    def _validate_store_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("STORE_TIMEOUT_SECONDS must be positive")
        return v

    @field_validator("SESSION_CODE_LENGTH")
    @classmethod
    def _validate_code_length(cls, v: int) -> int:
        if v < 0:
            raise ValueError("SESSION_CODE_LENGTH must be >= 0")
        return v

    @field_validator("SESSION_CODE_ALPHABET")
    @classmethod
    def _validate_code_alphabet(cls, v: str) -> str:
        if not v or len(set(v)) != len(v):
            raise ValueError("SESSION_CODE_ALPHABET must be non-empty with unique symbols")
        if v != v.upper():
            raise ValueError("SESSION_CODE_ALPHABET must not contain lowercase symbols")
        return v

    @field_validator("SESSION_CODE_MAX_ATTEMPTS")
    @classmethod
    def _validate_max_attempts(cls, v: int) -> int:
        if v < 1:
            raise ValueError("SESSION_CODE_MAX_ATTEMPTS must be >= 1")
        return v

    @field_validator("OTEL_TRACE_SAMPLE_RATIO")
    @classmethod
    def _validate_otel_sample_ratio(cls, v: float) -> float:
        if v < 0 or v > 1:
            raise ValueError("OTEL_TRACE_SAMPLE_RATIO must be between 0 and 1")
        return v


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
