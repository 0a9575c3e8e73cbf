"""Tests for environment-driven settings."""

import pytest

from settings import DEFAULT_STATIC_CONFIG_FILE, Settings, get_settings


@pytest.fixture
def clean_env(monkeypatch):
    for name in (
        "ENVIRONMENT",
        "NODE_REGISTRY_URL",
        "NODE_REGISTRY_API_KEY",
        "STATIC_CONFIG",
        "STATIC_CONFIG_FILE",
        "NODE_REGISTRY_CACHE_TTL_SECONDS",
        "AGGREGATE_CACHE_TTL_SECONDS",
        "AGGREGATOR_MAX_CONCURRENCY",
        "AGGREGATOR_TIMEOUT_SECONDS",
        "FRONT_OFFICE_CAPABILITY",
        "AGGREGATOR_UPSTREAM_PER_PAGE",
    ):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def test_defaults(clean_env):
    settings = Settings.from_env()

    assert settings.environment == "development"
    assert settings.node_registry_url is None
    assert settings.static_config is False
    assert settings.static_config_file == str(DEFAULT_STATIC_CONFIG_FILE)
    assert settings.registry_cache_ttl_seconds == 600.0
    assert settings.aggregate_cache_ttl_seconds == 300.0
    assert settings.front_office_capability == "Front Office"
    assert settings.upstream_per_page == 10_000


@pytest.mark.parametrize("value", ["1", "true", "TRUE", "yes", "on"])
def test_static_config_truthy(clean_env, value):
    clean_env.setenv("STATIC_CONFIG", value)

    assert Settings.from_env().static_config is True


@pytest.mark.parametrize("value", ["0", "false", "", "nope"])
def test_static_config_falsy(clean_env, value):
    clean_env.setenv("STATIC_CONFIG", value)

    assert Settings.from_env().static_config is False


def test_values_read_from_environment(clean_env):
    clean_env.setenv("ENVIRONMENT", "staging")
    clean_env.setenv("NODE_REGISTRY_URL", " http://registry.test/providers ")
    clean_env.setenv("NODE_REGISTRY_API_KEY", "k")
    clean_env.setenv("AGGREGATE_CACHE_TTL_SECONDS", "30")
    clean_env.setenv("AGGREGATOR_MAX_CONCURRENCY", "4")

    settings = Settings.from_env()

    assert settings.environment == "staging"
    assert settings.node_registry_url == "http://registry.test/providers"
    assert settings.node_registry_api_key == "k"
    assert settings.aggregate_cache_ttl_seconds == 30.0
    assert settings.aggregator_max_concurrency == 4


def test_invalid_numbers_fall_back(clean_env):
    clean_env.setenv("AGGREGATOR_TIMEOUT_SECONDS", "soon")
    clean_env.setenv("AGGREGATOR_MAX_CONCURRENCY", "many")

    settings = Settings.from_env()

    assert settings.aggregator_timeout_seconds == 15.0
    assert settings.aggregator_max_concurrency == 16


def test_blank_api_key_is_unset(clean_env):
    clean_env.setenv("NODE_REGISTRY_API_KEY", "   ")

    assert Settings.from_env().node_registry_api_key is None


def test_get_settings_is_cached(clean_env):
    get_settings.cache_clear()
    try:
        assert get_settings() is get_settings()
    finally:
        get_settings.cache_clear()
