"""
Request instrumentation: request ids, HTTP RED metrics and access logs.

The request id is taken from ``X-Request-ID`` (or ``X-Correlation-ID``) when
the caller sends one and echoed back on the response.
"""

import time
from typing import Callable, Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from .logging import correlation_id_context, get_logger
from .metrics import (
    http_request_duration_seconds,
    http_requests_in_progress,
    http_requests_total,
)

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"
SLOW_REQUEST_SECONDS = 2.0
_PROBE_PREFIXES = ("/health", "/api/v1/health", "/metrics")


def is_probe(path: str) -> bool:
    return path == "/" or path.startswith(_PROBE_PREFIXES)


class ObservabilityMiddleware(BaseHTTPMiddleware):
    """Health and metrics probes are counted but never logged."""

    def __init__(self, app: ASGIApp, enable_request_logging: bool = True):
        super().__init__(app)
        self.enable_request_logging = enable_request_logging

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        incoming = request.headers.get(REQUEST_ID_HEADER) or request.headers.get("X-Correlation-ID")
        method, path = request.method, request.url.path
        log_it = self.enable_request_logging and not is_probe(path)

        with correlation_id_context(incoming) as request_id:
            request.state.correlation_id = request_id
            in_progress = http_requests_in_progress.labels(method=method, endpoint=path)
            in_progress.inc()
            started = time.monotonic()
            status: Optional[int] = None
            try:
                if log_it:
                    logger.info(
                        f"{method} {path} started",
                        extra={"method": method, "path": path, "query_keys": sorted(request.query_params.keys())},
                    )
                response = await call_next(request)
                status = response.status_code
                response.headers[REQUEST_ID_HEADER] = request_id
                return response
            except Exception as exc:
                status = 500
                logger.error(
                    f"{method} {path} failed: {type(exc).__name__}",
                    extra={"method": method, "path": path, "error_type": type(exc).__name__},
                    exc_info=True,
                )
                raise
            finally:
                duration = time.monotonic() - started
                in_progress.dec()
                http_requests_total.labels(method=method, endpoint=path, status=status or 500).inc()
                http_request_duration_seconds.labels(method=method, endpoint=path).observe(duration)
                self._log_completion(log_it, method, path, status, duration)

    @staticmethod
    def _log_completion(log_it: bool, method: str, path: str, status: Optional[int], duration: float) -> None:
        if not log_it or status is None:
            return
        extra = {"method": method, "path": path, "status_code": status, "duration_seconds": round(duration, 3)}
        # A fan-out request is as slow as its slowest node
        if duration > SLOW_REQUEST_SECONDS:
            logger.warning(f"{method} {path} slow ({duration:.2f}s)", extra=extra)
        else:
            logger.info(f"{method} {path} completed", extra=extra)
