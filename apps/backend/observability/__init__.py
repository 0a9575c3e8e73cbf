"""
Observability infrastructure for the federated aggregator.

Provides:
- Structured logging with correlation IDs
- Prometheus metrics
- Request instrumentation middleware
"""

from .logging import get_logger, correlation_id_context, get_correlation_id
from .metrics import (
    metrics_registry,
    http_requests_total,
    http_request_duration_seconds,
    http_requests_in_progress,
    upstream_request_duration_seconds,
    upstream_request_errors_total,
    cache_hits_total,
    cache_misses_total,
    registry_resolutions_total,
)

__all__ = [
    "get_logger",
    "correlation_id_context",
    "get_correlation_id",
    "metrics_registry",
    "http_requests_total",
    "http_request_duration_seconds",
    "http_requests_in_progress",
    "upstream_request_duration_seconds",
    "upstream_request_errors_total",
    "cache_hits_total",
    "cache_misses_total",
    "registry_resolutions_total",
]
