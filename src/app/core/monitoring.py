"""Prometheus metrics and Sentry integration.

Provides:
- MetricsMiddleware: ASGI middleware for HTTP request metrics
- Scheduling counters: provider calls, calendar sync, dispatch failures,
  lifecycle transitions, scheduling outcomes
- init_sentry(): Initialize Sentry with organization-aware before_send callback
- get_metrics_response(): Prometheus exposition for /metrics
"""

from __future__ import annotations

import time

from prometheus_client import (
    REGISTRY,
    Counter,
    Histogram,
    generate_latest,
)
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

# ── HTTP Metrics ─────────────────────────────────────────────────────────────

http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status_code"],
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

# ── Scheduling Metrics ───────────────────────────────────────────────────────

provider_calls_total = Counter(
    "interview_provider_calls_total",
    "Meeting provider create calls",
    ["provider", "outcome"],
)

provider_call_duration_seconds = Histogram(
    "interview_provider_call_duration_seconds",
    "Meeting provider create call duration in seconds",
    ["provider"],
    buckets=(0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 15.0, 30.0),
)

calendar_sync_total = Counter(
    "interview_calendar_sync_total",
    "Calendar mirror attempts by resulting status",
    ["status"],
)

dispatch_failures_total = Counter(
    "interview_dispatch_failures_total",
    "Best-effort side-effect failures by target",
    ["target"],
)

interviews_scheduled_total = Counter(
    "interviews_scheduled_total",
    "Interviews scheduled, split by whether any integration degraded",
    ["outcome"],
)

interview_transitions_total = Counter(
    "interview_transitions_total",
    "Successful interview status transitions",
    ["to_status"],
)


# ── Metrics Middleware ───────────────────────────────────────────────────────


class MetricsMiddleware(BaseHTTPMiddleware):
    """ASGI middleware that records Prometheus metrics for every HTTP request.

    Uses the matched route path as the endpoint label to keep cardinality
    bounded. Skips the /metrics endpoint itself.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.url.path == "/metrics":
            return await call_next(request)

        start_time = time.perf_counter()
        response = await call_next(request)
        duration = time.perf_counter() - start_time

        route = request.scope.get("route")
        endpoint = getattr(route, "path", request.url.path)

        http_requests_total.labels(
            method=request.method,
            endpoint=endpoint,
            status_code=str(response.status_code),
        ).inc()

        http_request_duration_seconds.labels(
            method=request.method,
            endpoint=endpoint,
        ).observe(duration)

        return response


# ── Sentry Integration ───────────────────────────────────────────────────────


def init_sentry(dsn: str, environment: str) -> None:
    """Initialize Sentry SDK with organization-aware event tagging.

    Args:
        dsn: Sentry DSN string.
        environment: Deployment environment (development, staging, production).
    """
    import sentry_sdk
    from sentry_sdk.integrations.fastapi import FastApiIntegration
    from sentry_sdk.integrations.starlette import StarletteIntegration

    traces_sample_rate = 0.1 if environment == "production" else 1.0

    def before_send(event: dict, hint: dict) -> dict:
        """Add organization context to Sentry events."""
        try:
            from src.app.core.organization import get_current_organization

            ctx = get_current_organization()
            event.setdefault("tags", {})["org_id"] = ctx.org_id
        except RuntimeError:
            pass
        return event

    sentry_sdk.init(
        dsn=dsn,
        environment=environment,
        traces_sample_rate=traces_sample_rate,
        integrations=[
            StarletteIntegration(),
            FastApiIntegration(),
        ],
        before_send=before_send,
    )


# ── Metrics Endpoint ─────────────────────────────────────────────────────────


def get_metrics_response() -> Response:
    """Generate Prometheus exposition format response."""
    return Response(
        content=generate_latest(REGISTRY),
        media_type="text/plain; version=0.0.4; charset=utf-8",
    )
