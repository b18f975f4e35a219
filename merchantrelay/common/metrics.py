"""Prometheus metric definitions for the relay."""

from prometheus_client import Counter, Gauge, Histogram, generate_latest
from starlette.responses import Response


http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["service", "route", "method", "status_code"],
)
http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration seconds",
    ["service", "route", "method"],
)
upstream_requests_total = Counter(
    "upstream_requests_total",
    "Calls made to the bank gateway by outcome (http status or transport error kind)",
    ["endpoint", "outcome"],
)
upstream_latency_seconds = Histogram(
    "upstream_latency_seconds",
    "Bank gateway call latency seconds",
    ["endpoint"],
)
payment_callbacks_total = Counter("payment_callbacks_total", "Payment callbacks received from the bank")
broadcast_deliveries_total = Counter(
    "broadcast_deliveries_total",
    "Per-subscriber broadcast deliveries",
    ["topic", "outcome"],
)
broadcast_subscribers = Gauge(
    "broadcast_subscribers",
    "Currently subscribed real-time connections",
    ["topic"],
)


def metrics_response() -> Response:
    """Expose all registered Prometheus metrics in text format."""

    return Response(content=generate_latest(), media_type="text/plain")
