"""
FastAPI dependencies for the shared collaborators of the HTTP routes.

The aggregate cache and the node registry resolver are created once per
application in ``main.create_app`` and stored on ``app.state``; routes get
them through these functions, and tests replace them with
``app.dependency_overrides``.
"""

from typing import Optional

import httpx
from fastapi import Request

from aggregation.cache import ResultCache
from node_registry.resolver import NodeRegistryResolver
from settings import Settings, get_settings


def get_app_settings(request: Request) -> Settings:
    return getattr(request.app.state, "settings", None) or get_settings()


def get_aggregate_cache(request: Request) -> ResultCache:
    return request.app.state.aggregate_cache


def get_registry_resolver(request: Request) -> NodeRegistryResolver:
    return request.app.state.registry_resolver


def get_upstream_transport(request: Request) -> Optional[httpx.AsyncBaseTransport]:
    """Transport for node requests; None means httpx's default network transport."""
    return getattr(request.app.state, "upstream_transport", None)


def build_aggregate_cache(settings: Settings) -> ResultCache:
    return ResultCache(
        "aggregate",
        ttl=settings.aggregate_cache_ttl_seconds,
        max_size=settings.aggregate_cache_max_entries,
    )
