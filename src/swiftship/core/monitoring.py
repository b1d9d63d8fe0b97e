"""Prometheus metrics and LLM call tracking.

Provides:
- MetricsMiddleware: ASGI middleware for HTTP request metrics
- track_llm_call(): Context manager for LLM gateway call metrics
- record_rate_limit_retry(): Counter bump for each rate-limited attempt
- record_agent_invocation(): Counter for agent executions by type and outcome
- get_metrics_response(): Response body for the /metrics endpoint
"""

from __future__ import annotations

import time
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from prometheus_client import CONTENT_TYPE_LATEST, REGISTRY, Counter, Histogram, generate_latest
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

# ── HTTP Metrics ─────────────────────────────────────────────────────────────

http_requests_total = Counter(
    "swiftship_http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status_code"],
)

http_request_duration_seconds = Histogram(
    "swiftship_http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

# ── LLM Metrics ──────────────────────────────────────────────────────────────

llm_requests_total = Counter(
    "swiftship_llm_requests_total",
    "Total LLM gateway calls",
    ["operation", "model", "status"],
)

llm_request_duration_seconds = Histogram(
    "swiftship_llm_request_duration_seconds",
    "LLM gateway call duration in seconds, retries included",
    ["operation", "model"],
    buckets=(0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0),
)

llm_rate_limit_retries_total = Counter(
    "swiftship_llm_rate_limit_retries_total",
    "Rate-limited LLM attempts that were retried",
    ["operation"],
)

# ── Agent Metrics ────────────────────────────────────────────────────────────

agent_invocations_total = Counter(
    "swiftship_agent_invocations_total",
    "Agent invocations by agent type and outcome",
    ["agent", "status"],
)


# ── Metrics Middleware ───────────────────────────────────────────────────────


class MetricsMiddleware(BaseHTTPMiddleware):
    """ASGI middleware that records Prometheus metrics for every HTTP request.

    Skips the /metrics endpoint itself to avoid self-referential counting.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.url.path == "/metrics":
            return await call_next(request)

        endpoint = request.url.path
        start_time = time.perf_counter()
        response = await call_next(request)
        duration = time.perf_counter() - start_time

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


# ── Helpers ──────────────────────────────────────────────────────────────────


@asynccontextmanager
async def track_llm_call(operation: str, model: str) -> AsyncGenerator[None, None]:
    """Context manager that records count and duration of one gateway call.

    Usage:
        async with track_llm_call("complete", "openai/gpt-4o"):
            text = await self._complete_once(...)
    """
    start_time = time.perf_counter()
    status = "success"
    try:
        yield
    except Exception:
        status = "error"
        raise
    finally:
        llm_requests_total.labels(operation=operation, model=model, status=status).inc()
        llm_request_duration_seconds.labels(operation=operation, model=model).observe(
            time.perf_counter() - start_time
        )


def record_rate_limit_retry(operation: str) -> None:
    llm_rate_limit_retries_total.labels(operation=operation).inc()


def record_agent_invocation(agent: str, status: str) -> None:
    agent_invocations_total.labels(agent=agent, status=status).inc()


def get_metrics_response() -> Response:
    """Render the default registry in Prometheus text exposition format."""
    return Response(content=generate_latest(REGISTRY), media_type=CONTENT_TYPE_LATEST)
