"""Prometheus metrics for the request pipeline and equipment lifecycle."""

from prometheus_client import Counter, Histogram

http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests by method and status",
    ["method", "status"],
)

http_request_latency_ms = Histogram(
    "http_request_latency_ms",
    "HTTP request latency in milliseconds",
    ["method"],
    buckets=[5, 10, 25, 50, 100, 250, 500, 1000, 2500, 5000],
)

rate_limit_denials_total = Counter(
    "rate_limit_denials_total",
    "Requests rejected by the rate limiter",
)

audit_failures_total = Counter(
    "audit_failures_total",
    "Audit entries that could not be persisted",
)

equipment_transitions_total = Counter(
    "equipment_transitions_total",
    "Equipment status transitions recorded in history",
    ["new_status"],
)
