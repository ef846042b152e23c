from __future__ import annotations

import time

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from owls_portal.core.config import Settings, get_settings

# Collectors live in the process-wide registry, so the namespace is fixed at import.
_NAMESPACE = get_settings().metrics_namespace

_REQUEST_LABELS = ("method", "endpoint", "status")

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total number of HTTP requests handled by the portal",
    _REQUEST_LABELS,
    namespace=_NAMESPACE,
)
REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds",
    "Latency for portal HTTP requests",
    _REQUEST_LABELS,
    namespace=_NAMESPACE,
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1, 2.5, 5, 10, 30),
)
OAUTH_CALLBACKS = Counter(
    "oauth_callbacks_total",
    "OAuth callback outcomes partitioned by outcome kind and error code",
    ("provider", "outcome", "code"),
    namespace=_NAMESPACE,
)
UPSTREAM_DURATION = Histogram(
    "upstream_request_duration_seconds",
    "Duration of calls made to the upstream API server",
    ("endpoint", "status"),
    namespace=_NAMESPACE,
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1, 2.5, 5, 10, 15, 30),
)


def _normalize_endpoint(path: str) -> str:
    candidate = path or "unknown"
    return candidate if len(candidate) <= 120 else f"{candidate[:117]}..."


def _normalize_code(code: str | None) -> str:
    if not code:
        return "none"
    sanitized = code.strip().lower().replace(" ", "_")
    return sanitized[:64] if sanitized else "none"


class MetricsMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):  # type: ignore[override]
        if request.url.path.startswith("/metrics"):
            return await call_next(request)

        start = time.perf_counter()
        route = request.scope.get("route")
        endpoint = _normalize_endpoint(getattr(route, "path", None) or request.url.path)
        method = request.method.upper()
        status_label = "500"
        try:
            response = await call_next(request)
            status_label = str(response.status_code)
            return response
        finally:
            labels = {"method": method, "endpoint": endpoint, "status": status_label}
            REQUEST_COUNT.labels(**labels).inc()
            REQUEST_LATENCY.labels(**labels).observe(time.perf_counter() - start)


def record_oauth_callback(settings: Settings, provider: str, outcome: str, code: str | None) -> None:
    if not settings.metrics_enabled:
        return
    OAUTH_CALLBACKS.labels(provider=provider, outcome=outcome, code=_normalize_code(code)).inc()


def track_upstream_call(settings: Settings, endpoint: str, status: int | str, duration: float) -> None:
    if not settings.metrics_enabled:
        return
    UPSTREAM_DURATION.labels(endpoint=_normalize_endpoint(endpoint), status=str(status)).observe(max(duration, 0.0))


def metrics_response() -> Response:
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


__all__ = [
    "MetricsMiddleware",
    "metrics_response",
    "record_oauth_callback",
    "track_upstream_call",
]
