import os
import sys
from pathlib import Path
from typing import Any, Callable, Dict

import httpx
import pytest

# Add parent directory to path to allow importing the backend modules
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from aggregation.cache import ResultCache
from settings import Settings


STATIC_DEFINITIONS = """
default:
  - name: alpha
    url: http://alpha.test/search
    pid: p-alpha
  - name: beta
    url: http://beta.test/search
test:
  - name: gamma
    url: http://gamma.test/search
  - name: blank-url
    url: "  "
"""


@pytest.fixture
def definitions_file(tmp_path: Path) -> Path:
    path = tmp_path / "default_endpoints.yml"
    path.write_text(STATIC_DEFINITIONS, encoding="utf-8")
    return path


@pytest.fixture
def make_settings(definitions_file: Path) -> Callable[..., Settings]:
    """Settings pointing at a temporary definitions file; override any field by keyword."""

    def _make(**overrides: Any) -> Settings:
        values: Dict[str, Any] = {
            "environment": "production",
            "static_config_file": str(definitions_file),
            "aggregator_timeout_seconds": 2.0,
            "registry_timeout_seconds": 2.0,
        }
        values.update(overrides)
        return Settings(**values)

    return _make


@pytest.fixture
def aggregate_cache() -> ResultCache:
    return ResultCache("aggregate-test", ttl=60, max_size=32)


def json_routes(routes: Dict[str, Any]) -> httpx.MockTransport:
    """
    MockTransport answering by host+path. A value may be a dict/list (200 JSON),
    an ``httpx.Response``, an exception instance (raised) or a callable taking
    the request.
    """

    def handler(request: httpx.Request) -> httpx.Response:
        key = f"{request.url.host}{request.url.path}"
        if key not in routes:
            return httpx.Response(404, json={"error": "not found"})
        answer = routes[key]
        if callable(answer) and not isinstance(answer, httpx.Response):
            answer = answer(request)
        if isinstance(answer, Exception):
            raise answer
        if isinstance(answer, httpx.Response):
            return answer
        return httpx.Response(200, json=answer)

    return httpx.MockTransport(handler)


def text_response(body: str, status_code: int = 200) -> httpx.Response:
    return httpx.Response(status_code, content=body.encode("utf-8"), headers={"content-type": "text/plain"})
