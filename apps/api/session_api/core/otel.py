from __future__ import annotations

import logging
from dataclasses import dataclass
from threading import Lock
from typing import Any

from fastapi import FastAPI

from session_api.core.config import Settings

logger = logging.getLogger("swipe.api")


@dataclass(frozen=True)
class OTelSetupResult:
    enabled: bool
    reason: str


_TRACER_PROVIDER: Any | None = None
_TRACER_PROVIDER_LOCK = Lock()
_REDIS_INSTRUMENTED = False


def setup_otel(*, app: FastAPI, settings: Settings) -> OTelSetupResult:
    if not settings.ENABLE_OTEL_TRACING:
        return OTelSetupResult(enabled=False, reason="disabled")

    endpoint = settings.OTEL_EXPORTER_OTLP_TRACES_ENDPOINT.strip()
    if not endpoint:
        logger.warning(
            "OpenTelemetry tracing is enabled but OTEL_EXPORTER_OTLP_TRACES_ENDPOINT is empty."
        )
        return OTelSetupResult(enabled=False, reason="missing_endpoint")

    try:
        from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
        from opentelemetry.instrumentation.redis import RedisInstrumentor

        provider = _get_or_create_provider(settings=settings)
    except ImportError as exc:
        logger.warning("OpenTelemetry tracing setup skipped: %s", exc)
        return OTelSetupResult(enabled=False, reason="dependency_missing")

    FastAPIInstrumentor.instrument_app(
        app,
        tracer_provider=provider,
        excluded_urls=settings.OTEL_EXCLUDED_URLS,
    )

    # Redis spans cover the reserve round-trips; skip when running on the memory store.
    global _REDIS_INSTRUMENTED
    if settings.SESSION_STORE == "redis" and not _REDIS_INSTRUMENTED:
        RedisInstrumentor().instrument(tracer_provider=provider)
        _REDIS_INSTRUMENTED = True

    logger.info(
        "OpenTelemetry tracing enabled for service=%s endpoint=%s",
        settings.OTEL_SERVICE_NAME,
        endpoint,
    )

    return OTelSetupResult(enabled=True, reason="enabled")


def _get_or_create_provider(*, settings: Settings) -> Any:
    from opentelemetry import trace
    from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
    from opentelemetry.sdk.resources import SERVICE_NAME, SERVICE_VERSION, Resource
    from opentelemetry.sdk.trace import TracerProvider
    from opentelemetry.sdk.trace.export import BatchSpanProcessor
    from opentelemetry.sdk.trace.sampling import TraceIdRatioBased

    global _TRACER_PROVIDER
    with _TRACER_PROVIDER_LOCK:
        # The global tracer provider can only be set once per process.
        if _TRACER_PROVIDER is None:
            provider = TracerProvider(
                resource=Resource.create(
                    {
                        SERVICE_NAME: settings.OTEL_SERVICE_NAME,
                        SERVICE_VERSION: settings.VERSION,
                    }
                ),
                sampler=TraceIdRatioBased(settings.OTEL_TRACE_SAMPLE_RATIO),
            )
            exporter = OTLPSpanExporter(
                endpoint=settings.OTEL_EXPORTER_OTLP_TRACES_ENDPOINT,
                headers=parse_otlp_headers(settings.OTEL_EXPORTER_OTLP_HEADERS) or None,
            )
            provider.add_span_processor(BatchSpanProcessor(exporter))
            trace.set_tracer_provider(provider)
            _TRACER_PROVIDER = provider
        return _TRACER_PROVIDER


def parse_otlp_headers(raw_headers: str) -> dict[str, str]:
    out: dict[str, str] = {}
    for token in raw_headers.split(","):
        piece = token.strip()
        if not piece:
            continue
        key, sep, value = piece.partition("=")
        if not sep or not key.strip() or not value.strip():
            logger.warning("Ignoring malformed OTLP header token: %s", piece)
            continue
        out[key.strip()] = value.strip()
    return out
