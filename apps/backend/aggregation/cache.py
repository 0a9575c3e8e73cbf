"""
Result caching for computed aggregates and resolved endpoint lists.

``ResultCache`` is an in-memory TTL store with get-or-compute semantics.
Concurrent misses on the same key share one computation: each key gets its
own ``asyncio.Lock`` while a computation is in flight.

``compute_fingerprint`` derives the aggregate cache key from the endpoint
set and the non-pagination query parameters, independent of declaration
order and parameter order.
"""

from __future__ import annotations

import asyncio
import hashlib
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Sequence, TypeVar

from cachetools import TTLCache

from aggregation.models import PAGINATION_KEYS, Endpoint
from observability.logging import get_logger
from observability.metrics import cache_hits_total, cache_misses_total
from utils.json_utils import canonical_json

logger = get_logger(__name__)

T = TypeVar("T")

_MISSING = object()

FINGERPRINT_NAMESPACE = "data_aggregator"
FINGERPRINT_VERSION = "v1"


def _identity(endpoint: Any) -> Dict[str, str]:
    if isinstance(endpoint, Endpoint):
        name, url = endpoint.name, endpoint.url
    elif isinstance(endpoint, Mapping):
        name, url = endpoint.get("name"), endpoint.get("url")
    else:
        name = url = endpoint
    name = "" if name is None else str(name)
    url = "" if url is None else str(url)
    return {"name": name or url, "url": url or name}


def normalize_endpoint_identities(endpoints: Sequence[Any]) -> List[Dict[str, str]]:
    """``(name, url)`` pairs, each filling in for the other, sorted lexicographically."""
    identities = [_identity(e) for e in endpoints]
    return sorted(identities, key=lambda h: (h["name"], h["url"]))


def normalize_query_params(params: Optional[Mapping[Any, Any]]) -> Dict[str, Any]:
    """String keys, pagination removed, sorted by key."""
    stringified = {str(k): v for k, v in (params or {}).items()}
    return {k: stringified[k] for k in sorted(stringified) if k not in PAGINATION_KEYS}


def compute_fingerprint(
    endpoints: Sequence[Any],
    params: Optional[Mapping[Any, Any]] = None,
    *,
    namespace: str = FINGERPRINT_NAMESPACE,
    version: str = FINGERPRINT_VERSION,
) -> str:
    payload = {
        "endpoints": normalize_endpoint_identities(endpoints),
        "params": normalize_query_params(params),
    }
    digest = hashlib.sha256(canonical_json(payload).encode("utf-8")).hexdigest()
    return f"{namespace}:{version}:{digest}"


class ResultCache:
    """
    In-memory get-or-compute store.

    Example:
        cache = ResultCache("aggregate", ttl=300, max_size=256)
        aggregate = await cache.get_or_compute(key, lambda: pipeline.run())
    """

    def __init__(self, name: str, *, ttl: float, max_size: int = 256):
        self.name = name
        self.ttl = ttl
        self._cache: TTLCache[str, Any] = TTLCache(maxsize=max(1, max_size), ttl=ttl)
        self._locks: Dict[str, asyncio.Lock] = {}
        self._lock_users: Dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._cache)

    def __contains__(self, key: str) -> bool:
        return key in self._cache

    def get(self, key: str) -> Optional[Any]:
        return self._cache.get(key)

    def set(self, key: str, value: Any) -> None:
        self._cache[key] = value

    def delete(self, key: str) -> bool:
        return self._cache.pop(key, None) is not None

    def clear(self) -> None:
        self._cache.clear()

    async def get_or_compute(self, key: str, compute: Callable[[], Awaitable[T]]) -> T:
        """
        Return the cached value for ``key`` or compute, store and return it.

        Exceptions from ``compute`` propagate and nothing is stored; the next
        caller queued on the key retries the computation.
        """
        value = self._cache.get(key, _MISSING)
        if value is not _MISSING:
            cache_hits_total.labels(cache_type=self.name).inc()
            return value

        # The lock lives as long as anyone holds or waits on it
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._lock_users[key] = self._lock_users.get(key, 0) + 1
        try:
            async with lock:
                value = self._cache.get(key, _MISSING)
                if value is not _MISSING:
                    cache_hits_total.labels(cache_type=self.name).inc()
                    return value

                cache_misses_total.labels(cache_type=self.name).inc()
                logger.debug(f"[ResultCache:{self.name}] Miss for {key}")
                value = await compute()
                self._cache[key] = value
                return value
        finally:
            self._lock_users[key] -= 1
            if self._lock_users[key] == 0:
                del self._lock_users[key]
                self._locks.pop(key, None)
