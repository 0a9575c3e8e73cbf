"""
Safe JSON parsing helpers for upstream payloads.

Upstream nodes are not schema-checked, so everything here degrades to a
fallback value instead of raising.
"""

import json
import logging
from typing import Any, Mapping, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar('T')


def safe_json_loads(
    s: Any,
    default: Optional[T] = None,
    *,
    logger_name: str = "json",
) -> Any:
    """
    Parse a node body (text or bytes), returning ``default`` when it is
    empty, not UTF-8 or not JSON.

        >>> safe_json_loads('{"results": []}', {})
        {'results': []}
        >>> safe_json_loads("<html>", {})
        {}
    """
    if isinstance(s, (bytes, bytearray)):
        try:
            s = s.decode("utf-8")
        except UnicodeDecodeError as e:
            logger.warning(f"[{logger_name}] Body is not valid UTF-8: {e}")
            return default

    if not s or not isinstance(s, str) or not s.strip():
        return default

    try:
        return json.loads(s)
    except json.JSONDecodeError as e:
        logger.warning(f"[{logger_name}] Failed to parse JSON: {e}")
        return default


def canonical_json(obj: Any) -> str:
    """Serialize with sorted keys and no whitespace, so equal values give equal text."""
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=str)


def camel_case(key: str) -> str:
    """
    Examples:
        >>> camel_case("node_endpoint")
        'nodeEndpoint'
    """
    head, *rest = key.split("_")
    return head + "".join(part[:1].upper() + part[1:] for part in rest)


def json_get(data: Any, key: str, default: Any = None) -> Any:
    """
    Read ``key`` from a JSON object, accepting its camelCase spelling too.

    Upstream nodes disagree on casing (``node_endpoint`` vs ``nodeEndpoint``);
    the snake_case spelling wins when both are present.
    """
    if not isinstance(data, Mapping):
        return default
    value = data.get(key)
    if value is None:
        alt = camel_case(key)
        if alt != key:
            value = data.get(alt)
    return default if value is None else value
