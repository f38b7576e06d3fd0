from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from session_api.core.config import get_settings
from session_api.core.metrics import observe_http_request
from session_api.core.middleware import (
    RateLimiter,
    apply_security_headers,
    build_request_id,
    log_request_completion,
    now_ts,
    rate_limit_key,
    rate_limit_response,
    request_id_ctx,
)
from session_api.core.otel import setup_otel
from session_api.routers.health import router as health_router
from session_api.routers.metrics import build_metrics_router
from session_api.routers.sessions import router as sessions_router


def _route_path(request: Request) -> str:
    # Label metrics by route template so per-code lookups don't fan out.
    route = request.scope.get("route")
    return getattr(route, "path", None) or request.url.path


def create_app() -> FastAPI:
    settings = get_settings()
    app = FastAPI(title="Swipe Session API", version=settings.VERSION)

    rate_limiter = (
        RateLimiter(max_requests=settings.RATE_LIMIT_REQUESTS_PER_MINUTE)
        if settings.RATE_LIMIT_REQUESTS_PER_MINUTE > 0
        else None
    )
    origins = [o.strip() for o in settings.CORS_ORIGINS.split(",") if o.strip()]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=False,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def add_security_headers_and_request_context(request, call_next):  # type: ignore[no-untyped-def]
        request_id = build_request_id(request, header_name=settings.REQUEST_ID_HEADER)
        token = request_id_ctx.set(request_id)
        start_ts = now_ts()
        method = request.method
        response = None
        blocked = False
        status_code = 500

        try:
            if rate_limiter is not None:
                key = rate_limit_key(request)
                if not rate_limiter.allow(key, now_ts=now_ts()):
                    blocked = True
                    response = rate_limit_response(
                        retry_after_seconds=rate_limiter.retry_after_seconds(key, now_ts=now_ts())
                    )

            if response is None:
                response = await call_next(request)

            status_code = response.status_code
            response.headers[settings.REQUEST_ID_HEADER] = request_id
            apply_security_headers(response, settings=settings)
            return response
        finally:
            duration_ms = int((now_ts() - start_ts) * 1000)
            path = _route_path(request)
            log_request_completion(
                request_id=request_id,
                method=method,
                path=path,
                status_code=status_code,
                duration_ms=duration_ms,
                rate_limited=blocked,
            )
            if settings.ENABLE_PROMETHEUS_METRICS:
                observe_http_request(
                    method=method,
                    path=path,
                    status_code=status_code,
                    duration_ms=duration_ms,
                    rate_limited=blocked,
                )
            request_id_ctx.reset(token)

    otel = setup_otel(app=app, settings=settings)
    app.state.otel_tracing_enabled = otel.enabled
    app.state.otel_tracing_reason = otel.reason

    app.include_router(health_router)
    app.include_router(sessions_router)
    if settings.ENABLE_PROMETHEUS_METRICS:
        app.include_router(build_metrics_router(path=settings.PROMETHEUS_METRICS_PATH))
    return app


app = create_app()
