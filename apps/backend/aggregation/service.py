"""
Aggregation pipeline: fetch -> merge -> reconcile facets -> rank, behind a
fingerprint-keyed cache, then paginate per request.

The cached value is always the full, unpaginated aggregate; every request
receives a derived copy for its page.
"""

from __future__ import annotations

import time
from typing import Any, Dict, List, Mapping, Optional, Sequence

import httpx

from aggregation.cache import ResultCache, compute_fingerprint
from aggregation.endpoints import normalize_endpoints
from aggregation.fetcher import fetch_all
from aggregation.merger import build_aggregate
from aggregation.metrics import AggregationMetrics, log_aggregation
from aggregation.models import AggregateResult, Endpoint
from aggregation.pagination import paginate, pagination_params
from observability.logging import get_logger
from settings import Settings, get_settings

logger = get_logger(__name__)


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, dict, set)):
        return len(value) == 0
    return False


def compact_params(params: Optional[Mapping[Any, Any]]) -> Dict[str, Any]:
    """Drop None, empty and whitespace-only values; keys become strings."""
    return {str(k): v for k, v in (params or {}).items() if not _is_blank(v)}


class DataAggregator:
    """
    One aggregation request over a fixed endpoint list.

    Usage:
        aggregator = DataAggregator(endpoints, {"q": "rice", "page": 2}, cache=cache)
        page = await aggregator.aggregate_data()
        everything = await aggregator.aggregate_all()
    """

    def __init__(
        self,
        endpoints: Sequence[Any],
        params: Optional[Mapping[Any, Any]] = None,
        *,
        cache: Optional[ResultCache] = None,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.endpoints: List[Endpoint] = normalize_endpoints(list(endpoints))
        self.params = compact_params(params)
        self.cache = cache
        self.settings = settings or get_settings()
        self.transport = transport
        self._cache_key: Optional[str] = None

    @property
    def cache_key(self) -> str:
        if self._cache_key is None:
            self._cache_key = compute_fingerprint(self.endpoints, self.params)
        return self._cache_key

    async def aggregate_data(self) -> AggregateResult:
        """The requested page of the (cached) full aggregate."""
        full = await self.aggregate_all()
        page, per_page = pagination_params(self.params)
        return paginate(full, page, per_page)

    async def aggregate_all(self) -> AggregateResult:
        """The full merged and ranked aggregate, from cache when available."""
        if self.cache is None:
            return await self.fetch_and_merge_all_data()

        computed = False

        async def compute() -> AggregateResult:
            nonlocal computed
            computed = True
            return await self.fetch_and_merge_all_data()

        aggregate = await self.cache.get_or_compute(self.cache_key, compute)
        if not computed:
            log_aggregation(AggregationMetrics.from_cached(self.cache_key, aggregate))
        return aggregate

    async def fetch_and_merge_all_data(self) -> AggregateResult:
        started = time.monotonic()
        logger.info(f"[DataAggregator] Aggregating {len(self.endpoints)} endpoints: {[e.name for e in self.endpoints]}")

        responses = await fetch_all(
            self.endpoints,
            self.params,
            per_page_override=self.settings.upstream_per_page,
            max_concurrency=self.settings.aggregator_max_concurrency,
            timeout_seconds=self.settings.aggregator_timeout_seconds,
            connect_timeout_seconds=self.settings.aggregator_connect_timeout_seconds,
            transport=self.transport,
        )
        aggregate = build_aggregate(responses, total_sources=len(self.endpoints))

        elapsed_ms = (time.monotonic() - started) * 1000
        log_aggregation(AggregationMetrics.from_run(self.cache_key, responses, aggregate, elapsed_ms))
        return aggregate
