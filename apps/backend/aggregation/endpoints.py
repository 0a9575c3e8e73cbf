"""Normalization of loosely shaped endpoint declarations into :class:`Endpoint`."""

import logging
from typing import Any, Iterable, List, Optional, Sequence

from aggregation.models import Endpoint
from utils.json_utils import json_get

logger = logging.getLogger(__name__)

_NAME_KEYS = ("name", "service", "id")


def _first_present(item: Any, keys: Sequence[str]) -> Any:
    for key in keys:
        value = json_get(item, key)
        if value is not None and str(value).strip():
            return value
    return None


def normalize_endpoint(item: Any) -> Optional[Endpoint]:
    """
    Turn a bare URL string, a mapping or an ``Endpoint`` into an ``Endpoint``.

    The name falls back to the URL. Entries without a usable URL return None.
    """
    if isinstance(item, Endpoint):
        return item if item.url else None

    if isinstance(item, dict):
        url = json_get(item, "url")
        name = _first_present(item, _NAME_KEYS)
        pid = json_get(item, "pid")
    elif item is None:
        return None
    else:
        url = name = item
        pid = None

    url = "" if url is None else str(url).strip()
    if not url:
        return None

    return Endpoint(name=name if name is not None else url, url=url, pid=pid)


def normalize_endpoints(items: Any) -> List[Endpoint]:
    """Normalize a list of declarations, dropping entries with a blank URL."""
    if items is None:
        return []
    if isinstance(items, (str, dict, Endpoint)) or not isinstance(items, Iterable):
        items = [items]

    endpoints: List[Endpoint] = []
    for item in items:
        endpoint = normalize_endpoint(item)
        if endpoint is None:
            logger.debug(f"[Endpoints] Skipping entry without url: {item!r}")
            continue
        endpoints.append(endpoint)
    return endpoints


def filter_by_names(endpoints: Sequence[Endpoint], names: Optional[Iterable[str]]) -> List[Endpoint]:
    """Keep endpoints whose name is in ``names``, in their declared order."""
    if not names:
        return list(endpoints)
    allow = {str(n) for n in names}
    return [e for e in endpoints if e.name in allow]
