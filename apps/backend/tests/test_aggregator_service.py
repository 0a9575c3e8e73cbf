"""Tests for the cached fetch -> merge -> rank -> paginate pipeline."""

import logging

import pytest

from aggregation.cache import ResultCache
from aggregation.service import DataAggregator, compact_params
from conftest import json_routes

ENDPOINTS = [
    {"name": "alpha", "url": "http://alpha.test/search"},
    {"name": "beta", "url": "http://beta.test/search"},
]


def counting_routes(calls):
    def alpha(request):
        calls.append("alpha")
        return {"results": [{"id": i} for i in range(8)]}

    def beta(request):
        calls.append("beta")
        return {"results": [{"id": i} for i in range(8, 12)]}

    return json_routes({"alpha.test/search": alpha, "beta.test/search": beta})


def test_compact_params_drops_blanks():
    assert compact_params({"q": "rice", "a": "", "b": "  ", "c": None, "d": [], "e": 0}) == {"q": "rice", "e": 0}


def test_cache_key_ignores_pagination(make_settings):
    settings = make_settings()
    page_one = DataAggregator(ENDPOINTS, {"q": "x", "page": 1}, settings=settings)
    page_two = DataAggregator(list(reversed(ENDPOINTS)), {"page": 2, "q": "x"}, settings=settings)

    assert page_one.cache_key == page_two.cache_key


@pytest.mark.asyncio
async def test_aggregate_data_returns_requested_page(make_settings, aggregate_cache):
    calls = []
    aggregator = DataAggregator(
        ENDPOINTS, {"page": 2, "per_page": 5}, cache=aggregate_cache, settings=make_settings(),
        transport=counting_routes(calls),
    )

    page = await aggregator.aggregate_data()

    # ranked by id descending: 11..0
    assert [r["id"] for r in page.results] == [6, 5, 4, 3, 2]
    assert page.pagination["total_count"] == 12
    assert page.pagination["current_page"] == 2


@pytest.mark.asyncio
async def test_full_aggregate_is_cached_once(make_settings, aggregate_cache):
    calls = []
    settings = make_settings()
    transport = counting_routes(calls)

    for page in (1, 2, 3):
        aggregator = DataAggregator(
            ENDPOINTS, {"page": page, "per_page": 5}, cache=aggregate_cache, settings=settings, transport=transport
        )
        await aggregator.aggregate_data()

    assert sorted(calls) == ["alpha", "beta"]
    cached = aggregate_cache.get(aggregator.cache_key)
    assert len(cached.results) == 12
    assert cached.pagination == {}


@pytest.mark.asyncio
async def test_without_cache_every_call_fetches(make_settings):
    calls = []
    aggregator = DataAggregator(ENDPOINTS, settings=make_settings(), transport=counting_routes(calls))

    await aggregator.aggregate_all()
    await aggregator.aggregate_all()

    assert len(calls) == 4


@pytest.mark.asyncio
async def test_all_nodes_failing_is_still_an_aggregate(make_settings, aggregate_cache):
    aggregator = DataAggregator(
        ENDPOINTS, cache=aggregate_cache, settings=make_settings(), transport=json_routes({})
    )

    result = await aggregator.aggregate_all()

    assert result.results == []
    assert result.metadata.failed_sources == 2
    assert [n.status for n in result.metadata.nodes] == [404, 404]


@pytest.mark.asyncio
async def test_completion_record_flags_cache_hits(make_settings, aggregate_cache, caplog):
    calls = []
    aggregator = DataAggregator(
        ENDPOINTS, {"q": "rice"}, cache=aggregate_cache, settings=make_settings(), transport=counting_routes(calls)
    )

    with caplog.at_level(logging.INFO, logger="aggregation.metrics"):
        await aggregator.aggregate_all()
        await aggregator.aggregate_all()

    records = [r for r in caplog.records if getattr(r, "event", None) == "aggregation_complete"]
    assert [r.cache_hit for r in records] == [False, True]
    hit = records[1]
    assert hit.getMessage() == "Aggregation served from cache"
    assert hit.result_count == 12
    assert hit.nodes["succeeded"] == 2
    assert len(calls) == 2
