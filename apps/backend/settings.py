"""
Process configuration read from the environment.

Values come from the process environment, optionally seeded from
apps/backend/.env. Everything is read once; call ``get_settings.cache_clear()``
after changing the environment (tests do this).
"""
import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from observability.logging import get_logger

logger = get_logger(__name__)

BACKEND_ROOT = Path(__file__).resolve().parent
DEFAULT_STATIC_CONFIG_FILE = BACKEND_ROOT / "config" / "default_endpoints.yml"

load_dotenv(dotenv_path=BACKEND_ROOT / ".env", override=False)

_TRUTHY = {"1", "true", "yes", "on", "y"}


def truthy_env(name: str) -> bool:
    value = (os.getenv(name) or "").strip().lower()
    return value in _TRUTHY


def _env_str(name: str) -> Optional[str]:
    value = (os.getenv(name) or "").strip()
    return value or None


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"[Settings] Invalid value for {name}={raw!r}, using {default}")
        return default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"[Settings] Invalid value for {name}={raw!r}, using {default}")
        return default


@dataclass(frozen=True)
class Settings:
    environment: str = "development"
    version: str = "0.1.0"

    # Node registry
    node_registry_url: Optional[str] = None
    node_registry_api_key: Optional[str] = None
    static_config: bool = False
    static_config_file: str = str(DEFAULT_STATIC_CONFIG_FILE)
    registry_cache_ttl_seconds: float = 600.0
    registry_timeout_seconds: float = 5.0
    registry_connect_timeout_seconds: float = 3.0
    front_office_capability: str = "Front Office"

    # Aggregator
    aggregate_cache_ttl_seconds: float = 300.0
    aggregate_cache_max_entries: int = 256
    aggregator_timeout_seconds: float = 15.0
    aggregator_connect_timeout_seconds: float = 3.0
    aggregator_max_concurrency: int = 16
    upstream_per_page: int = 10_000

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            environment=(os.getenv("ENVIRONMENT") or "development").strip(),
            version=os.getenv("APP_VERSION", "0.1.0"),
            node_registry_url=_env_str("NODE_REGISTRY_URL"),
            node_registry_api_key=_env_str("NODE_REGISTRY_API_KEY"),
            static_config=truthy_env("STATIC_CONFIG"),
            static_config_file=_env_str("STATIC_CONFIG_FILE") or str(DEFAULT_STATIC_CONFIG_FILE),
            registry_cache_ttl_seconds=_env_float("NODE_REGISTRY_CACHE_TTL_SECONDS", 600.0),
            registry_timeout_seconds=_env_float("NODE_REGISTRY_TIMEOUT_SECONDS", 5.0),
            registry_connect_timeout_seconds=_env_float("NODE_REGISTRY_CONNECT_TIMEOUT_SECONDS", 3.0),
            front_office_capability=_env_str("FRONT_OFFICE_CAPABILITY") or "Front Office",
            aggregate_cache_ttl_seconds=_env_float("AGGREGATE_CACHE_TTL_SECONDS", 300.0),
            aggregate_cache_max_entries=_env_int("AGGREGATE_CACHE_MAX_ENTRIES", 256),
            aggregator_timeout_seconds=_env_float("AGGREGATOR_TIMEOUT_SECONDS", 15.0),
            aggregator_connect_timeout_seconds=_env_float("AGGREGATOR_CONNECT_TIMEOUT_SECONDS", 3.0),
            aggregator_max_concurrency=max(1, _env_int("AGGREGATOR_MAX_CONCURRENCY", 16)),
            upstream_per_page=_env_int("AGGREGATOR_UPSTREAM_PER_PAGE", 10_000),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings for this process."""
    return Settings.from_env()
