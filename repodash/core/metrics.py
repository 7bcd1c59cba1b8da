from __future__ import annotations

from typing import TYPE_CHECKING

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Gauge, Histogram, generate_latest

if TYPE_CHECKING:
    from repodash.core.middleware import RequestRecord

_HTTP_REQUESTS_TOTAL = Counter(
    "repodash_http_requests_total",
    "Total HTTP requests handled by the API.",
    labelnames=("method", "path", "status_code"),
)
_HTTP_REQUEST_DURATION_SECONDS = Histogram(
    "repodash_http_request_duration_seconds",
    "HTTP request duration in seconds.",
    labelnames=("method", "path"),
)
_HTTP_RATE_LIMITED_TOTAL = Counter(
    "repodash_http_rate_limited_total",
    "Total HTTP requests blocked by rate limiting.",
    labelnames=("method", "path"),
)
_RELAY_CONNECTIONS = Gauge(
    "repodash_relay_connections",
    "Open messaging relay connections.",
    labelnames=("state",),
)
_RELAY_EVENTS_TOTAL = Counter(
    "repodash_relay_events_total",
    "Messaging relay events received, by event name and outcome.",
    labelnames=("event", "outcome"),
)
_LINE_COUNT_TOTAL = Counter(
    "repodash_line_count_total",
    "Repository line count runs, by outcome.",
    labelnames=("outcome",),
)
_LINE_COUNT_DURATION_SECONDS = Histogram(
    "repodash_line_count_duration_seconds",
    "Clone plus count duration in seconds.",
)


def observe_http_request(record: RequestRecord) -> None:
    method = record.method or "UNKNOWN"
    path = record.path or "unknown"
    _HTTP_REQUESTS_TOTAL.labels(method, path, str(record.status_code)).inc()
    _HTTP_REQUEST_DURATION_SECONDS.labels(method, path).observe(
        max(0.0, record.duration_ms / 1000.0)
    )
    if record.rate_limited:
        _HTTP_RATE_LIMITED_TOTAL.labels(method, path).inc()


def relay_connection_opened() -> None:
    _RELAY_CONNECTIONS.labels(state="connected").inc()


def relay_connection_identified() -> None:
    _RELAY_CONNECTIONS.labels(state="identified").inc()


def relay_connection_closed(*, identified: bool) -> None:
    _RELAY_CONNECTIONS.labels(state="connected").dec()
    if identified:
        _RELAY_CONNECTIONS.labels(state="identified").dec()


def observe_relay_event(*, event: str, outcome: str) -> None:
    _RELAY_EVENTS_TOTAL.labels(event=event or "unknown", outcome=outcome).inc()


def observe_line_count(*, outcome: str, duration_seconds: float) -> None:
    _LINE_COUNT_TOTAL.labels(outcome=outcome).inc()
    _LINE_COUNT_DURATION_SECONDS.observe(max(0.0, duration_seconds))


def render_latest() -> tuple[bytes, str]:
    return generate_latest(), CONTENT_TYPE_LATEST
