"""
Prometheus metrics collection for the federated aggregator.

Provides RED metrics (Rate, Errors, Duration) for the HTTP surface and
for every upstream node, plus cache and registry counters.
"""

from prometheus_client import (
    Counter,
    Histogram,
    Gauge,
    REGISTRY,
)

# Use the default registry
metrics_registry = REGISTRY

# HTTP Metrics (RED - Rate, Errors, Duration)
http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status"],
    registry=metrics_registry,
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
    registry=metrics_registry,
)

http_requests_in_progress = Gauge(
    "http_requests_in_progress",
    "Number of HTTP requests in progress",
    ["method", "endpoint"],
    registry=metrics_registry,
)

# Upstream node metrics
upstream_request_duration_seconds = Histogram(
    "upstream_request_duration_seconds",
    "Backend node request duration in seconds",
    ["node"],
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0],
    registry=metrics_registry,
)

upstream_request_errors_total = Counter(
    "upstream_request_errors_total",
    "Total backend node request failures",
    ["node", "error_type"],  # error_type: timeout, transport, status
    registry=metrics_registry,
)

aggregated_results_count = Histogram(
    "aggregated_results_count",
    "Number of primary results in a computed aggregate",
    buckets=[0, 1, 10, 50, 100, 500, 1000, 5000, 10000],
    registry=metrics_registry,
)

# Cache metrics
cache_hits_total = Counter(
    "cache_hits_total",
    "Total cache hits",
    ["cache_type"],
    registry=metrics_registry,
)

cache_misses_total = Counter(
    "cache_misses_total",
    "Total cache misses",
    ["cache_type"],
    registry=metrics_registry,
)

# Registry metrics
registry_resolutions_total = Counter(
    "registry_resolutions_total",
    "Node registry resolutions by mode and outcome",
    ["mode", "outcome"],  # mode: static, dynamic; outcome: ok, fallback
    registry=metrics_registry,
)

registry_provider_failures_total = Counter(
    "registry_provider_failures_total",
    "Providers dropped during dynamic resolution",
    registry=metrics_registry,
)
