"""Application metrics (prometheus_client).

All metrics live here so the service has one inventory of what it
measures.  Other modules import a metric and bump it at the point of
action; ``/metrics`` exposes the registry for scraping.
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

# ---------------------------------------------------------------------------
# HTTP traffic (recorded by MetricsMiddleware)
# ---------------------------------------------------------------------------

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests by method, endpoint, and status code",
    ["method", "endpoint", "status_code"],
)

REQUEST_DURATION = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)

ACTIVE_REQUESTS = Gauge(
    "http_active_requests",
    "Number of HTTP requests currently being processed",
)

# ---------------------------------------------------------------------------
# Domain metrics
# ---------------------------------------------------------------------------

PERMISSION_CACHE_OPERATIONS = Counter(
    "permission_cache_operations_total",
    "Permission cache lookups by result",
    ["operation"],  # hit|miss
)

PERMISSION_CACHE_INVALIDATIONS = Counter(
    "permission_cache_invalidations_total",
    "Permission cache purges by outcome",
    ["result"],  # ok|failed
)

RESTART_REQUESTS = Counter(
    "restart_requests_total",
    "Process restart requests by outcome",
    ["result"],  # accepted|declined
)
