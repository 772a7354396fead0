"""Request guard and per-client rate limiting for the metrics endpoint."""

from __future__ import annotations

import time
from collections.abc import Callable
from threading import Lock

from fastapi import Request, Response, status
from fastapi.responses import PlainTextResponse
from starlette.middleware.base import BaseHTTPMiddleware

from ..utils.logging import setup_logger

logger = setup_logger(__name__, context={"component": "rate_limit"})

UNKNOWN_CLIENT = "unknown"


class RateLimiter:
    """
    Fixed-window rate limiter keyed by client identity.

    A request is admitted when the client has no recorded request or the last
    admitted one is at least ``window_seconds`` old. Denied requests do not
    move the window.
    """

    def __init__(self, window_seconds: float = 1.0, max_clients: int | None = None):
        """
        Initialize rate limiter.

        Args:
            window_seconds: Minimum time between two admitted requests per client
            max_clients: Optional cap on tracked clients; the least recently
                admitted client is evicted when a new one would exceed it
        """
        self.window_seconds = window_seconds
        self.max_clients = max_clients

        # {client identity: last admitted timestamp}
        self._last_seen: dict[str, float] = {}
        self._lock = Lock()

    def admit(self, client_identity: str, now: float | None = None) -> bool:
        """
        Check whether a request from ``client_identity`` is allowed.

        Args:
            client_identity: Rate limit key (the request's Host header)
            now: Monotonic timestamp of the request, defaults to ``time.monotonic()``

        Returns:
            True if admitted (and recorded), False otherwise
        """
        current_time = time.monotonic() if now is None else now

        with self._lock:
            last_seen = self._last_seen.get(client_identity)
            if last_seen is not None and current_time - last_seen < self.window_seconds:
                return False

            if last_seen is None and self.max_clients is not None:
                self._evict_oldest_locked(self.max_clients - 1)

            self._last_seen[client_identity] = current_time
            return True

    def _evict_oldest_locked(self, keep: int) -> None:
        while len(self._last_seen) > keep:
            oldest = min(self._last_seen, key=self._last_seen.__getitem__)
            del self._last_seen[oldest]

    def cleanup_stale_entries(self, max_age_seconds: float = 3600, now: float | None = None) -> int:
        """
        Remove clients not admitted within ``max_age_seconds``.

        Returns:
            Number of removed entries
        """
        current_time = time.monotonic() if now is None else now
        with self._lock:
            stale_keys = [
                key
                for key, last_seen in self._last_seen.items()
                if current_time - last_seen > max_age_seconds
            ]
            for key in stale_keys:
                del self._last_seen[key]

        if stale_keys:
            logger.debug(
                f"Cleaned up {len(stale_keys)} stale rate limit entries",
                extra={"status": "info"},
            )
        return len(stale_keys)

    def __len__(self) -> int:
        with self._lock:
            return len(self._last_seen)


def client_identity(request: Request) -> str:
    """Return the rate limit key for ``request``: its Host header or ``unknown``."""

    return request.headers.get("host") or UNKNOWN_CLIENT


class ScrapeGuardMiddleware(BaseHTTPMiddleware):
    """
    Reject requests before the metrics pipeline runs.

    Checks, in order: the method must be GET (405), the path must be the
    metrics path (404), the client must pass the rate limiter (429).
    """

    def __init__(
        self,
        app,
        *,
        metrics_path: str = "/metrics",
        limiter: RateLimiter | None = None,
    ):
        super().__init__(app)
        self.metrics_path = metrics_path
        self.limiter = limiter or RateLimiter()

        logger.info(
            f"Rate limiting initialized: 1 req/{self.limiter.window_seconds}s per host",
            extra={"status": "info"},
        )

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """
        Process request through the guard.

        Args:
            request: Incoming request
            call_next: Next middleware/handler

        Returns:
            Response (either from handler or a plain-text rejection)
        """
        client = client_identity(request)

        if request.method != "GET":
            logger.warning(
                f"Security warning: method not allowed: {request.method}",
                extra={"status": "rejected", "client": client},
            )
            return PlainTextResponse(
                "405 Method Not Allowed",
                status_code=status.HTTP_405_METHOD_NOT_ALLOWED,
            )

        if request.url.path != self.metrics_path:
            logger.warning(
                f"Security warning: unknown URL requested: {request.url.path}",
                extra={"status": "not_found", "client": client},
            )
            return PlainTextResponse("404 Not Found", status_code=status.HTTP_404_NOT_FOUND)

        if not self.limiter.admit(client):
            logger.warning(
                f"Security warning: rate limit reached for {client}",
                extra={"status": "rate_limited", "client": client},
            )
            return PlainTextResponse(
                "429 Too Many Requests",
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            )

        return await call_next(request)
