"""Backend node discovery: static definitions and two-tier registry resolution."""

from .loader import load_endpoint_definitions, select_environment
from .resolver import (
    REGISTRY_CACHE_KEY,
    NodeRegistryResolver,
    ProviderDescriptor,
    find_capability_endpoint,
    looks_like_providers,
)

__all__ = [
    "load_endpoint_definitions",
    "select_environment",
    "REGISTRY_CACHE_KEY",
    "NodeRegistryResolver",
    "ProviderDescriptor",
    "find_capability_endpoint",
    "looks_like_providers",
]
