"""
Prometheus metrics for the API and the search pipeline.
"""

from __future__ import annotations

from typing import Callable

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest

REQUEST_COUNT = Counter(
    "scout_requests_total",
    "Total HTTP requests",
    ["endpoint", "method", "status"],
)

REQUEST_DURATION = Histogram(
    "scout_request_duration_ms",
    "Request latency in milliseconds",
    ["endpoint"],
    buckets=(5, 10, 25, 50, 100, 250, 500, 1000, 2500, 5000, 10000, 20000, 45000),
)

STAGE_DURATION = Histogram(
    "scout_stage_duration_seconds",
    "Pipeline stage latency in seconds",
    ["stage"],  # classification, description, embedding, retrieval, selection
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1, 2.5, 5, 10, 30),
)

FALLBACK_EVENTS = Counter(
    "scout_fallbacks_total",
    "Non-fatal stage failures absorbed by a fallback",
    ["stage"],  # classification, description, selection, conversation
)

ERROR_COUNT = Counter(
    "scout_errors_total",
    "Requests that ended in an error",
    ["kind"],
)


# ---------------------------------------------------------------------------
# Public helpers
# ---------------------------------------------------------------------------


def record_request(endpoint: str, method: str, status: int) -> None:
    """Increment the request counter."""
    REQUEST_COUNT.labels(endpoint=endpoint, method=method, status=str(status)).inc()


def observe_duration(endpoint: str, duration_ms: float) -> None:
    """Record request duration."""
    REQUEST_DURATION.labels(endpoint=endpoint).observe(duration_ms)


def observe_stage(stage: str) -> Callable[[float], None]:
    """Observer for ``timed_operation`` that records into the stage histogram."""
    return STAGE_DURATION.labels(stage=stage).observe


def record_fallback(stage: str) -> None:
    FALLBACK_EVENTS.labels(stage=stage).inc()


def record_error(kind: str) -> None:
    ERROR_COUNT.labels(kind=kind).inc()


def metrics_response() -> tuple[bytes, str]:
    """Return (body, content_type) for the /metrics endpoint."""
    return generate_latest(), CONTENT_TYPE_LATEST
