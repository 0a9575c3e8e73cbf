"""
Resolution of the backend node list consumed by the aggregator.

Static mode (``STATIC_CONFIG`` truthy) reads the YAML definitions file.
Dynamic mode asks ``NODE_REGISTRY_URL`` for providers. Providers that point at
a node descriptor (``node_endpoint``) are resolved concurrently to the URL
of their Front Office capability; a provider that cannot be resolved is
dropped on its own. If the registry itself fails, the static defaults are
used instead.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

import httpx

from aggregation.cache import ResultCache
from aggregation.endpoints import filter_by_names, normalize_endpoints
from aggregation.models import Endpoint
from exceptions import ProviderResolutionError, RegistryError
from node_registry.loader import load_endpoint_definitions
from observability.logging import get_logger
from observability.metrics import registry_provider_failures_total, registry_resolutions_total
from settings import Settings, get_settings
from utils.json_utils import json_get
from utils.security import redact_secrets_from_text, redact_value

logger = get_logger(__name__)

REGISTRY_CACHE_KEY = "node_registry:endpoints:v1"
API_KEY_HEADER = "X-Api-Key"
PLACEHOLDER_ENDPOINT = "-"


def looks_like_providers(body: Any) -> bool:
    """Provider lists carry a node descriptor reference instead of a service URL."""
    if not isinstance(body, list) or not body:
        return False
    first = body[0]
    return isinstance(first, dict) and ("node_endpoint" in first or "nodeEndpoint" in first)


def _clean(value: Any) -> str:
    return "" if value is None else str(value).strip()


@dataclass(frozen=True)
class ProviderDescriptor:
    """One registry entry awaiting resolution."""
    name: Optional[str]
    pid: Optional[str]
    node_endpoint: str

    @classmethod
    def from_item(cls, item: Any) -> "ProviderDescriptor":
        if not isinstance(item, dict):
            raise ProviderResolutionError(f"Unexpected provider entry: {item!r}")
        name = _clean(json_get(item, "name")) or _clean(json_get(item, "id")) or None
        pid = _clean(json_get(item, "pid")) or None
        return cls(name=name, pid=pid, node_endpoint=_clean(json_get(item, "node_endpoint")))

    @property
    def label(self) -> str:
        return self.name or self.pid or self.node_endpoint or "provider"


def find_capability_endpoint(descriptor: Any, capability_type: str) -> Optional[str]:
    """
    URL of the first capability whose type matches ``capability_type``
    (case-insensitive, trimmed). The ``-`` placeholder counts as absent.
    """
    if not isinstance(descriptor, dict):
        return None
    capabilities = json_get(descriptor, "capabilities") or []
    if isinstance(capabilities, dict):
        capabilities = [capabilities]
    if not isinstance(capabilities, list):
        return None

    wanted = capability_type.strip().casefold()
    for capability in capabilities:
        if not isinstance(capability, dict):
            continue
        if _clean(json_get(capability, "capability_type")).casefold() != wanted:
            continue
        url = _clean(json_get(capability, "endpoint"))
        if not url or url == PLACEHOLDER_ENDPOINT:
            return None
        return url
    return None


class NodeRegistryResolver:
    """
    Produces the ordered endpoint list, cached for the registry TTL.

    Usage:
        resolver = NodeRegistryResolver(settings)
        all_nodes, selected = await resolver.resolve(names=["catalog-eu"])
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        cache: Optional[ResultCache] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings or get_settings()
        if cache is None:
            cache = ResultCache("node_registry", ttl=self.settings.registry_cache_ttl_seconds, max_size=8)
        self.cache = cache
        self.transport = transport
        self.api_key = (self.settings.node_registry_api_key or "").strip()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    async def endpoints(self) -> List[Endpoint]:
        if self.settings.static_config:
            logger.info("[NodeRegistry] STATIC_CONFIG enabled, using default endpoints")
            registry_resolutions_total.labels(mode="static", outcome="ok").inc()
            return self.default_endpoints()

        try:
            return list(await self.cache.get_or_compute(REGISTRY_CACHE_KEY, self.fetch_from_registry))
        except Exception as e:
            logger.warning(f"[NodeRegistry] cache/fetch error: {type(e).__name__}: {self._safe(e)}")
            return self.default_endpoints()

    async def resolve(self, names: Optional[Sequence[str]] = None) -> Tuple[List[Endpoint], List[Endpoint]]:
        """``(all_nodes, selected)`` where ``selected`` honours an explicit name subset."""
        all_nodes = await self.endpoints()
        if not all_nodes:
            all_nodes = self.default_endpoints()
        return all_nodes, filter_by_names(all_nodes, names)

    def default_endpoints(self) -> List[Endpoint]:
        try:
            return load_endpoint_definitions(self.settings.static_config_file, self.settings.environment)
        except Exception as e:
            logger.error(f"[NodeRegistry] failed to load default endpoints: {type(e).__name__}: {e}")
            return []

    # ------------------------------------------------------------------
    # Dynamic discovery
    # ------------------------------------------------------------------
    def _headers(self) -> Dict[str, str]:
        return {API_KEY_HEADER: self.api_key} if self.api_key else {}

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=httpx.Timeout(
                self.settings.registry_timeout_seconds,
                connect=self.settings.registry_connect_timeout_seconds,
            ),
            headers=self._headers(),
            follow_redirects=True,
            transport=self.transport,
        )

    def _safe(self, error: Exception) -> str:
        return redact_value(redact_secrets_from_text(str(error)), self.api_key)

    async def fetch_from_registry(self) -> List[Endpoint]:
        """Registry lookup; any registry-level failure falls back to the static defaults."""
        try:
            url = self.settings.node_registry_url
            if not url:
                raise RegistryError("NODE_REGISTRY_URL not set")

            async with self._client() as client:
                response = await client.get(url)
                if not response.is_success:
                    raise RegistryError(
                        f"Registry request failed with status {response.status_code}",
                        detail={"status": response.status_code},
                    )
                body = response.json()

                if looks_like_providers(body):
                    endpoints = await self.build_endpoints_from_registry(body, client)
                else:
                    endpoints = normalize_endpoints(body if isinstance(body, list) else [])

            registry_resolutions_total.labels(mode="dynamic", outcome="ok").inc()
            logger.info(f"[NodeRegistry] Resolved {len(endpoints)} endpoints from registry")
            return endpoints
        except Exception as e:
            registry_resolutions_total.labels(mode="dynamic", outcome="fallback").inc()
            logger.warning(f"[NodeRegistry] fetch_from_registry failed: {type(e).__name__}: {self._safe(e)}")
            return self.default_endpoints()

    async def build_endpoints_from_registry(
        self, providers: Sequence[Any], client: httpx.AsyncClient
    ) -> List[Endpoint]:
        """Resolve every provider concurrently; failed providers are left out."""
        semaphore = asyncio.Semaphore(max(1, self.settings.aggregator_max_concurrency))

        async def bounded(item: Any) -> Optional[Endpoint]:
            async with semaphore:
                return await self._resolve_or_skip(item, client)

        resolved = await asyncio.gather(*(bounded(item) for item in providers))
        return [e for e in resolved if e is not None and e.url]

    async def _resolve_or_skip(self, item: Any, client: httpx.AsyncClient) -> Optional[Endpoint]:
        try:
            return await self.resolve_provider(item, client)
        except Exception as e:
            registry_provider_failures_total.inc()
            logger.warning(f"[NodeRegistry] provider processing failed: {type(e).__name__}: {self._safe(e)}")
            return None

    async def resolve_provider(self, item: Any, client: httpx.AsyncClient) -> Endpoint:
        provider = ProviderDescriptor.from_item(item)
        if not provider.node_endpoint:
            raise ProviderResolutionError(
                f"Missing node_endpoint for {provider.label}", provider=provider.label
            )

        response = await client.get(provider.node_endpoint)
        if not response.is_success:
            raise ProviderResolutionError(
                f"node_endpoint request failed with status {response.status_code}",
                provider=provider.label,
            )

        url = find_capability_endpoint(response.json() or {}, self.settings.front_office_capability)
        if not url:
            raise ProviderResolutionError(
                f"{self.settings.front_office_capability} endpoint not found for {provider.label}",
                provider=provider.label,
            )

        return Endpoint(name=provider.name or url, url=url, pid=provider.pid)
