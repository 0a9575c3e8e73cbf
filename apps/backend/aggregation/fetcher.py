"""Concurrent fan-out of one GET per backend node, with per-node failure isolation."""

from __future__ import annotations

import asyncio
import time
from typing import Any, Dict, List, Mapping, Optional, Sequence

import httpx

from aggregation.models import PAGINATION_KEYS, Endpoint, RawResponse
from observability.logging import get_logger
from observability.metrics import upstream_request_duration_seconds, upstream_request_errors_total
from utils.security import redact_secrets_from_text

logger = get_logger(__name__)

DEFAULT_UPSTREAM_PER_PAGE = 10_000


def build_upstream_params(params: Mapping[str, Any], per_page_override: int) -> Dict[str, Any]:
    """Forwarded query: everything except pagination, plus the large page size."""
    api_params = {str(k): v for k, v in params.items() if str(k) not in PAGINATION_KEYS}
    api_params["per_page"] = per_page_override
    return api_params


def decode_body(response: httpx.Response) -> Any:
    """JSON bodies are parsed; anything else is kept as text for the merger to sniff."""
    content_type = response.headers.get("content-type", "")
    if "json" in content_type.lower():
        try:
            return response.json()
        except ValueError:
            return response.text
    return response.text


async def fetch_endpoint(
    client: httpx.AsyncClient,
    endpoint: Endpoint,
    api_params: Mapping[str, Any],
    *,
    timeout_seconds: float,
) -> RawResponse:
    """Fetch a single node. Never raises; failures become ``success=False``."""
    started = time.monotonic()
    try:
        response = await asyncio.wait_for(
            client.get(endpoint.url, params=dict(api_params)), timeout=timeout_seconds
        )
        elapsed = time.monotonic() - started
        upstream_request_duration_seconds.labels(node=endpoint.name).observe(elapsed)
        if not response.is_success:
            upstream_request_errors_total.labels(node=endpoint.name, error_type="status").inc()
            logger.warning(f"[Fetcher] {endpoint.name} answered {response.status_code}")
        return RawResponse(
            source=endpoint.name,
            url=endpoint.url,
            data=decode_body(response),
            status=response.status_code,
            success=response.is_success,
            latency_ms=int(elapsed * 1000),
        )
    except asyncio.TimeoutError:
        elapsed = time.monotonic() - started
        upstream_request_errors_total.labels(node=endpoint.name, error_type="timeout").inc()
        logger.warning(f"[Fetcher] {endpoint.name} timed out after {elapsed:.2f}s")
        return RawResponse(
            source=endpoint.name,
            url=endpoint.url,
            error="timed out",
            success=False,
            latency_ms=int(elapsed * 1000),
        )
    except Exception as e:
        elapsed = time.monotonic() - started
        error_msg = redact_secrets_from_text(str(e)) or type(e).__name__
        upstream_request_errors_total.labels(node=endpoint.name, error_type="transport").inc()
        logger.warning(f"[Fetcher] {endpoint.name} failed: {type(e).__name__}: {error_msg}")
        return RawResponse(
            source=endpoint.name,
            url=endpoint.url,
            error=error_msg,
            success=False,
            latency_ms=int(elapsed * 1000),
        )


async def fetch_all(
    endpoints: Sequence[Endpoint],
    params: Optional[Mapping[str, Any]] = None,
    *,
    per_page_override: int = DEFAULT_UPSTREAM_PER_PAGE,
    max_concurrency: int = 16,
    timeout_seconds: float = 15.0,
    connect_timeout_seconds: float = 3.0,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> List[RawResponse]:
    """
    Query every endpoint concurrently and wait for all of them.

    At most ``max_concurrency`` requests are in flight. The returned list is
    in ``endpoints`` order, not completion order, and holds exactly one
    record per endpoint.
    """
    if not endpoints:
        return []

    api_params = build_upstream_params(params or {}, per_page_override)
    semaphore = asyncio.Semaphore(max(1, max_concurrency))

    async with httpx.AsyncClient(
        timeout=httpx.Timeout(timeout_seconds, connect=connect_timeout_seconds),
        follow_redirects=True,
        transport=transport,
    ) as client:

        async def bounded(endpoint: Endpoint) -> RawResponse:
            async with semaphore:
                return await fetch_endpoint(client, endpoint, api_params, timeout_seconds=timeout_seconds)

        responses = await asyncio.gather(*(bounded(e) for e in endpoints))

    failed = sum(1 for r in responses if not r.success)
    logger.info(f"[Fetcher] Fetched {len(responses)} endpoints ({failed} failed)")
    return list(responses)
