"""Tests for static and dynamic node discovery."""

import httpx
import pytest

from aggregation.cache import ResultCache
from aggregation.models import Endpoint
from conftest import json_routes
from node_registry.resolver import (
    API_KEY_HEADER,
    REGISTRY_CACHE_KEY,
    NodeRegistryResolver,
    ProviderDescriptor,
    find_capability_endpoint,
    looks_like_providers,
)

REGISTRY_URL = "http://registry.test/providers"


def descriptor(endpoint, capability_type="Front Office"):
    return {
        "capabilities": [
            {"capability_type": "Back Office", "endpoint": "http://internal.test/admin"},
            {"capability_type": capability_type, "endpoint": endpoint},
        ]
    }


@pytest.fixture
def dynamic_settings(make_settings):
    return make_settings(node_registry_url=REGISTRY_URL)


class TestCapabilityLookup:
    def test_matches_case_insensitively_and_trimmed(self):
        body = {"capabilities": [{"capability_type": "  front office ", "endpoint": " http://fo.test "}]}

        assert find_capability_endpoint(body, "Front Office") == "http://fo.test"

    def test_placeholder_counts_as_missing(self):
        assert find_capability_endpoint(descriptor("-"), "Front Office") is None

    def test_camel_case_keys(self):
        body = {"capabilities": [{"capabilityType": "Front Office", "endpoint": "http://fo.test"}]}

        assert find_capability_endpoint(body, "Front Office") == "http://fo.test"

    def test_no_capabilities(self):
        assert find_capability_endpoint({}, "Front Office") is None
        assert find_capability_endpoint(["not", "a", "dict"], "Front Office") is None

    def test_provider_detection(self):
        assert looks_like_providers([{"node_endpoint": "http://n.test"}])
        assert looks_like_providers([{"nodeEndpoint": "http://n.test"}])
        assert not looks_like_providers([{"url": "http://n.test"}])
        assert not looks_like_providers([])
        assert not looks_like_providers({"node_endpoint": "x"})

    def test_descriptor_label(self):
        assert ProviderDescriptor.from_item({"pid": "p1", "node_endpoint": "x"}).label == "p1"
        assert ProviderDescriptor.from_item({"nodeEndpoint": "http://n.test"}).node_endpoint == "http://n.test"


class TestStaticMode:
    @pytest.mark.asyncio
    async def test_definitions_file_is_used(self, make_settings):
        def registry_must_not_be_called(request):
            raise AssertionError("registry queried in static mode")

        resolver = NodeRegistryResolver(
            make_settings(static_config=True, node_registry_url=REGISTRY_URL),
            transport=json_routes({"registry.test/providers": registry_must_not_be_called}),
        )

        endpoints = await resolver.endpoints()

        assert [e.name for e in endpoints] == ["alpha", "beta"]

    @pytest.mark.asyncio
    async def test_environment_selects_definitions(self, make_settings):
        resolver = NodeRegistryResolver(make_settings(static_config=True, environment="test"))

        assert [e.name for e in await resolver.endpoints()] == ["gamma"]

    @pytest.mark.asyncio
    async def test_unreadable_definitions_give_empty_list(self, make_settings, tmp_path):
        resolver = NodeRegistryResolver(
            make_settings(static_config=True, static_config_file=str(tmp_path / "absent.yml"))
        )

        assert await resolver.endpoints() == []


class TestDynamicMode:
    @pytest.mark.asyncio
    async def test_providers_resolved_to_front_office_urls(self, dynamic_settings):
        transport = json_routes({
            "registry.test/providers": [
                {"name": "one", "pid": "p1", "node_endpoint": "http://node1.test/descriptor"},
                {"name": "two", "pid": "p2", "node_endpoint": "http://node2.test/descriptor"},
                {"name": "three", "pid": "p3", "node_endpoint": "http://node3.test/descriptor"},
            ],
            "node1.test/descriptor": descriptor("http://fo1.test/search"),
            "node2.test/descriptor": httpx.Response(500, json={"error": "down"}),
            "node3.test/descriptor": descriptor("http://fo3.test/search"),
        })
        resolver = NodeRegistryResolver(dynamic_settings, transport=transport)

        endpoints = await resolver.endpoints()

        assert endpoints == [
            Endpoint(name="one", url="http://fo1.test/search", pid="p1"),
            Endpoint(name="three", url="http://fo3.test/search", pid="p3"),
        ]

    @pytest.mark.asyncio
    async def test_providers_without_usable_capability_are_dropped(self, dynamic_settings):
        transport = json_routes({
            "registry.test/providers": [
                {"name": "placeholder", "node_endpoint": "http://node1.test/d"},
                {"name": "wrong-type", "node_endpoint": "http://node2.test/d"},
                {"name": "no-descriptor", "node_endpoint": ""},
                {"name": "ok", "node_endpoint": "http://node3.test/d"},
            ],
            "node1.test/d": descriptor("-"),
            "node2.test/d": descriptor("http://x.test", capability_type="Back Office"),
            "node3.test/d": descriptor("http://ok.test/search"),
        })
        resolver = NodeRegistryResolver(dynamic_settings, transport=transport)

        assert [e.name for e in await resolver.endpoints()] == ["ok"]

    @pytest.mark.asyncio
    async def test_unnamed_provider_is_named_by_url(self, dynamic_settings):
        transport = json_routes({
            "registry.test/providers": [{"node_endpoint": "http://node1.test/d"}],
            "node1.test/d": descriptor("http://fo.test/search"),
        })
        resolver = NodeRegistryResolver(dynamic_settings, transport=transport)

        [endpoint] = await resolver.endpoints()

        assert endpoint.name == "http://fo.test/search"

    @pytest.mark.asyncio
    async def test_direct_endpoint_list_is_normalized(self, dynamic_settings):
        transport = json_routes({
            "registry.test/providers": [
                {"name": "x", "url": "http://x.test/search"},
                "http://y.test/search",
                {"name": "no-url"},
            ],
        })
        resolver = NodeRegistryResolver(dynamic_settings, transport=transport)

        assert [e.name for e in await resolver.endpoints()] == ["x", "http://y.test/search"]

    @pytest.mark.asyncio
    async def test_api_key_sent_when_configured(self, make_settings):
        seen = []

        def capture(request):
            seen.append(request.headers.get(API_KEY_HEADER))
            return [{"name": "x", "url": "http://x.test"}]

        resolver = NodeRegistryResolver(
            make_settings(node_registry_url=REGISTRY_URL, node_registry_api_key="s3cret"),
            transport=json_routes({"registry.test/providers": capture}),
        )
        await resolver.endpoints()

        assert seen == ["s3cret"]

    @pytest.mark.asyncio
    async def test_api_key_header_absent_when_not_configured(self, dynamic_settings):
        seen = []

        def capture(request):
            seen.append(API_KEY_HEADER in request.headers)
            return [{"name": "x", "url": "http://x.test"}]

        resolver = NodeRegistryResolver(dynamic_settings, transport=json_routes({"registry.test/providers": capture}))
        await resolver.endpoints()

        assert seen == [False]

    @pytest.mark.asyncio
    async def test_result_cached_between_calls(self, dynamic_settings):
        calls = []

        def registry(request):
            calls.append(1)
            return [{"name": "x", "url": "http://x.test"}]

        resolver = NodeRegistryResolver(dynamic_settings, transport=json_routes({"registry.test/providers": registry}))

        first = await resolver.endpoints()
        second = await resolver.endpoints()

        assert first == second
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_injected_empty_cache_is_used(self, dynamic_settings):
        shared = ResultCache("shared", ttl=60)
        transport = json_routes({"registry.test/providers": [{"name": "x", "url": "http://x.test"}]})
        resolver = NodeRegistryResolver(dynamic_settings, cache=shared, transport=transport)

        await resolver.endpoints()

        assert resolver.cache is shared
        assert REGISTRY_CACHE_KEY in shared


class TestRegistryFallback:
    @pytest.mark.asyncio
    async def test_missing_registry_url_uses_defaults(self, make_settings):
        resolver = NodeRegistryResolver(make_settings(node_registry_url=None))

        assert [e.name for e in await resolver.endpoints()] == ["alpha", "beta"]

    @pytest.mark.asyncio
    async def test_registry_error_status_uses_defaults(self, dynamic_settings):
        transport = json_routes({"registry.test/providers": httpx.Response(503, text="unavailable")})
        resolver = NodeRegistryResolver(dynamic_settings, transport=transport)

        assert [e.name for e in await resolver.endpoints()] == ["alpha", "beta"]

    @pytest.mark.asyncio
    async def test_unreachable_registry_uses_defaults(self, dynamic_settings):
        transport = json_routes({"registry.test/providers": httpx.ConnectError("no route to host")})
        resolver = NodeRegistryResolver(dynamic_settings, transport=transport)

        assert [e.name for e in await resolver.endpoints()] == ["alpha", "beta"]

    @pytest.mark.asyncio
    async def test_empty_registry_answer_resolves_to_defaults(self, dynamic_settings):
        resolver = NodeRegistryResolver(dynamic_settings, transport=json_routes({"registry.test/providers": []}))

        all_nodes, selected = await resolver.resolve()

        assert [e.name for e in all_nodes] == ["alpha", "beta"]
        assert selected == all_nodes


class TestResolve:
    @pytest.mark.asyncio
    async def test_name_subset_keeps_full_list(self, make_settings):
        resolver = NodeRegistryResolver(make_settings(static_config=True))

        all_nodes, selected = await resolver.resolve(["beta"])

        assert [e.name for e in all_nodes] == ["alpha", "beta"]
        assert [e.name for e in selected] == ["beta"]

    @pytest.mark.asyncio
    async def test_unknown_names_select_nothing(self, make_settings):
        resolver = NodeRegistryResolver(make_settings(static_config=True))

        _, selected = await resolver.resolve(["nope"])

        assert selected == []
