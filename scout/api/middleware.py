"""
Request timing middleware and shutdown drain.

Every request gets an ``X-Request-Id`` (the caller's, when supplied) and an
``X-Response-Time-Ms`` header, a Prometheus observation under a normalized
route label, and one access-log line. While the app is draining, new work is
refused with 503 so in-flight searches can finish.

Pure ASGI (not BaseHTTPMiddleware) so response bodies are never buffered.
"""

from __future__ import annotations

import asyncio
import re
import time
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass, field

from starlette.responses import JSONResponse
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from scout.api.metrics import observe_duration, record_request
from scout.config import get_logger

logger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Shutdown drain
# ---------------------------------------------------------------------------


@dataclass
class ShutdownCoordinator:
    """Counts in-flight requests and lets shutdown wait for them.

    Usage:
        async with coordinator.track_request():
            await handle_request()

        drained = await coordinator.drain(timeout=30.0)
    """

    _in_flight: int = field(default=0, init=False)
    _draining: bool = field(default=False, init=False)
    _idle: asyncio.Event = field(default_factory=asyncio.Event, init=False)
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock, init=False)

    @property
    def in_flight(self) -> int:
        return self._in_flight

    @property
    def is_draining(self) -> bool:
        return self._draining

    @asynccontextmanager
    async def track_request(self):
        async with self._lock:
            self._in_flight += 1
        try:
            yield
        finally:
            async with self._lock:
                self._in_flight -= 1
                if self._draining and self._in_flight == 0:
                    self._idle.set()

    async def drain(self, timeout: float = 30.0) -> bool:
        """Stop accepting work and wait for in-flight requests.

        Returns:
            True if every request finished within ``timeout``.
        """
        async with self._lock:
            self._draining = True
            if self._in_flight == 0:
                self._idle.set()

        if self._idle.is_set():
            return True

        logger.info("Draining %d in-flight requests (timeout %.0fs)", self._in_flight, timeout)
        try:
            await asyncio.wait_for(self._idle.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning("Drain timed out with %d requests in flight", self._in_flight)
            return False
        return True


_coordinator: ShutdownCoordinator | None = None


def get_shutdown_coordinator() -> ShutdownCoordinator:
    global _coordinator
    if _coordinator is None:
        _coordinator = ShutdownCoordinator()
    return _coordinator


def reset_shutdown_coordinator() -> None:
    """Drop the process-wide coordinator (tests and app restarts)."""
    global _coordinator
    _coordinator = None


# ---------------------------------------------------------------------------
# Route labels
# ---------------------------------------------------------------------------

# Paths left out of the access log (still measured)
_QUIET_PATHS = {"/metrics", "/health", "/ready"}

# Paths still served while draining
_PROBE_PATHS = {"/health", "/ready"}

_STATIC_ROUTES = {
    "/": "/",
    "/health": "/health",
    "/ready": "/ready",
    "/metrics": "/metrics",
    "/search": "/search",
    "/recommend": "/recommend",
}

# Parameterized routes; raw ids would blow up label cardinality
_PATTERN_ROUTES = (
    (re.compile(r"^/games/[^/]+/similar$"), "/games/{item_id}/similar"),
)


def _normalize_path(path: str) -> str:
    """Map a raw URL path to a route label, or 'unknown'."""
    clean = path.rstrip("/") or "/"
    if clean in _STATIC_ROUTES:
        return _STATIC_ROUTES[clean]
    for pattern, label in _PATTERN_ROUTES:
        if pattern.match(clean):
            return label
    return "unknown"


def _incoming_request_id(scope: Scope) -> str | None:
    for name, value in scope.get("headers", []):
        if name == b"x-request-id":
            rid = value.decode("latin-1").strip()
            return rid[:64] or None
    return None


class LatencyMiddleware:
    """Pure ASGI middleware for timing, request ids and drain rejection."""

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        coordinator = get_shutdown_coordinator()
        route = _normalize_path(scope["path"])
        method = scope["method"]

        if coordinator.is_draining and route not in _PROBE_PATHS:
            response = JSONResponse(
                status_code=503,
                content={"success": False, "error": "Server is shutting down"},
                headers={"Retry-After": "5"},
            )
            await response(scope, receive, send)
            return

        start = time.perf_counter()
        request_id = _incoming_request_id(scope) or uuid.uuid4().hex[:12]
        scope.setdefault("state", {})["request_id"] = request_id
        status = 500

        async def send_wrapper(message: Message) -> None:
            nonlocal status
            if message["type"] == "http.response.start":
                status = message["status"]
                elapsed_ms = (time.perf_counter() - start) * 1000
                headers = list(message.get("headers", []))
                headers.append((b"x-response-time-ms", f"{elapsed_ms:.1f}".encode()))
                headers.append((b"x-request-id", request_id.encode()))
                message = {**message, "headers": headers}
            await send(message)

        async with coordinator.track_request():
            try:
                await self.app(scope, receive, send_wrapper)
            except Exception:
                logger.exception("%s %s [%s] failed", method, route, request_id)
                raise
            finally:
                elapsed_ms = (time.perf_counter() - start) * 1000
                record_request(route, method, status)
                observe_duration(route, elapsed_ms)
                if route not in _QUIET_PATHS:
                    logger.info(
                        "%s %s %d %.1fms [%s]",
                        method,
                        scope["path"],
                        status,
                        elapsed_ms,
                        request_id,
                    )
