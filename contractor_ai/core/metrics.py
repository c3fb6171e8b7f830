"""Prometheus metrics for the application."""

import time

from prometheus_client import Counter, Histogram, Info, generate_latest
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

# --- Metrics ---

APP_INFO = Info("app", "Contractor AI gateway info")
APP_INFO.info({"version": "1.0.0", "name": "contractor_ai"})

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"],
)

REQUEST_DURATION = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "path"],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1, 2.5, 5, 10, 30],
)

AI_GATEWAY_REQUESTS = Counter(
    "ai_gateway_requests_total",
    "AI gateway operations by outcome",
    ["operation", "outcome"],
)

AI_UPSTREAM_CALLS = Counter(
    "ai_upstream_calls_total",
    "Upstream provider HTTP attempts by endpoint and status",
    ["endpoint", "status"],
)

AI_UPSTREAM_DURATION = Histogram(
    "ai_upstream_call_duration_seconds",
    "Upstream provider call duration in seconds",
    ["endpoint"],
    buckets=[0.25, 0.5, 1, 2.5, 5, 10, 20, 30, 60, 120],
)


def record_gateway_request(operation: str, outcome: str) -> None:
    AI_GATEWAY_REQUESTS.labels(operation=operation, outcome=outcome).inc()


def record_upstream_call(endpoint: str, status: str, duration: float) -> None:
    AI_UPSTREAM_CALLS.labels(endpoint=endpoint, status=status).inc()
    AI_UPSTREAM_DURATION.labels(endpoint=endpoint).observe(duration)


# --- Middleware ---


def _route_path(request: Request) -> str:
    """Route template (not the raw URL) to keep label cardinality bounded."""
    route = request.scope.get("route")
    return getattr(route, "path", "unmatched")


class PrometheusMiddleware(BaseHTTPMiddleware):
    """Collect HTTP request metrics for Prometheus."""

    async def dispatch(self, request: Request, call_next) -> Response:
        if request.url.path == "/metrics":
            return await call_next(request)

        start = time.perf_counter()
        response = await call_next(request)
        duration = time.perf_counter() - start

        path = _route_path(request)
        REQUEST_COUNT.labels(method=request.method, path=path, status=response.status_code).inc()
        REQUEST_DURATION.labels(method=request.method, path=path).observe(duration)

        return response


def metrics_response() -> Response:
    """Generate Prometheus /metrics response."""
    return Response(
        content=generate_latest(),
        media_type="text/plain; version=0.0.4; charset=utf-8",
    )
