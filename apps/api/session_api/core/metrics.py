from __future__ import annotations

from prometheus_client import Counter, Histogram

_HTTP_REQUESTS_TOTAL = Counter(
    "swipe_http_requests_total",
    "Total HTTP requests handled by the API.",
    labelnames=("method", "path", "status_code"),
)
_HTTP_REQUEST_DURATION_SECONDS = Histogram(
    "swipe_http_request_duration_seconds",
    "HTTP request duration in seconds.",
    labelnames=("method", "path"),
)
_HTTP_RATE_LIMITED_TOTAL = Counter(
    "swipe_http_rate_limited_total",
    "Total HTTP requests blocked by rate limiting.",
    labelnames=("method", "path"),
)
_SESSION_ALLOCATIONS_TOTAL = Counter(
    "swipe_session_allocations_total",
    "Session code allocation calls by outcome.",
    labelnames=("outcome",),
)
_SESSION_ALLOCATION_ATTEMPTS = Histogram(
    "swipe_session_allocation_attempts",
    "Store reservation attempts spent per allocation call.",
    buckets=(1, 2, 3, 4, 6, 8, 12, 16),
)
_SESSION_CODE_COLLISIONS_TOTAL = Counter(
    "swipe_session_code_collisions_total",
    "Generated session codes that collided with a live ticket.",
)

ALLOCATION_OUTCOMES = ("allocated", "exhausted", "store_unavailable", "invalid")


def observe_http_request(
    *,
    method: str,
    path: str,
    status_code: int,
    duration_ms: int,
    rate_limited: bool,
) -> None:
    safe_path = path or "unknown"
    safe_method = method or "UNKNOWN"

    _HTTP_REQUESTS_TOTAL.labels(
        method=safe_method,
        path=safe_path,
        status_code=str(status_code),
    ).inc()
    _HTTP_REQUEST_DURATION_SECONDS.labels(method=safe_method, path=safe_path).observe(
        max(0.0, duration_ms / 1000.0)
    )
    if rate_limited:
        _HTTP_RATE_LIMITED_TOTAL.labels(method=safe_method, path=safe_path).inc()


def observe_allocation(*, outcome: str, attempts: int) -> None:
    if outcome not in ALLOCATION_OUTCOMES:
        raise ValueError(f"Unknown allocation outcome: {outcome}")
    _SESSION_ALLOCATIONS_TOTAL.labels(outcome=outcome).inc()
    if attempts > 0:
        _SESSION_ALLOCATION_ATTEMPTS.observe(attempts)


def observe_code_collision() -> None:
    _SESSION_CODE_COLLISIONS_TOTAL.inc()
