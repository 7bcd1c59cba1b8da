from __future__ import annotations

import json
import logging
import math
import threading
import time
from collections import deque
from collections.abc import Mapping
from contextvars import ContextVar
from dataclasses import asdict, dataclass, field

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.responses import Response

from repodash.core.config import Settings
from repodash.core.security import new_random_token

request_id_ctx: ContextVar[str | None] = ContextVar("request_id", default=None)
logger = logging.getLogger("repodash.api")


@dataclass
class SlidingWindowLimiter:
    """Per-client request budget over a sliding window, shared across worker threads."""

    limit: int
    window_seconds: float = 60.0
    _lock: threading.Lock = field(default_factory=threading.Lock)
    _hits: dict[str, deque[float]] = field(default_factory=dict)
    _next_sweep: float = 0.0

    def hit(self, key: str, *, now: float) -> float | None:
        """Record a request; returns None if allowed, else seconds until the next free slot."""
        with self._lock:
            cutoff = now - self.window_seconds
            if now >= self._next_sweep:
                # Forget clients whose every hit has left the window.
                self._hits = {k: v for k, v in self._hits.items() if v and v[-1] > cutoff}
                self._next_sweep = now + self.window_seconds

            hits = self._hits.setdefault(key, deque())
            while hits and hits[0] <= cutoff:
                hits.popleft()

            if len(hits) >= self.limit:
                return max(0.0, hits[0] + self.window_seconds - now)

            hits.append(now)
            return None


def resolve_request_id(request: Request, *, header_name: str) -> str:
    incoming = (request.headers.get(header_name) or "").strip()
    return incoming[:128] if incoming else new_random_token(nbytes=18)


def security_headers(settings: Settings) -> dict[str, str]:
    return {
        "X-Content-Type-Options": "nosniff",
        "X-Frame-Options": "DENY",
        "Referrer-Policy": "same-origin",
        "Content-Security-Policy": settings.CONTENT_SECURITY_POLICY,
    }


def apply_headers(response: Response, headers: Mapping[str, str]) -> None:
    # Handlers may set their own values; those win.
    for name, value in headers.items():
        response.headers.setdefault(name, value)


def client_key(request: Request) -> str:
    forwarded_for = (request.headers.get("x-forwarded-for") or "").strip()
    if forwarded_for:
        return forwarded_for.split(",", 1)[0].strip()
    return request.client.host if request.client else "unknown"


def too_many_requests(retry_after: float) -> JSONResponse:
    return JSONResponse(
        status_code=429,
        content={"detail": "Rate limit exceeded"},
        headers={"Retry-After": str(max(1, math.ceil(retry_after)))},
    )


def route_template(request: Request) -> str:
    # Label by route template so repository and user ids don't explode metric cardinality.
    route = request.scope.get("route")
    return getattr(route, "path", None) or request.url.path


@dataclass(frozen=True)
class RequestRecord:
    request_id: str
    method: str
    path: str
    status_code: int
    duration_ms: int
    rate_limited: bool

    def log(self) -> None:
        logger.info(
            json.dumps(
                {"event": "http.request.completed", **asdict(self)},
                separators=(",", ":"),
                sort_keys=True,
            )
        )


def now_ts() -> float:
    return time.time()
