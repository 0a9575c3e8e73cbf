"""
Fold heterogeneous node responses into one :class:`AggregateResult`.

Per response, in endpoint order:
  1. parse the body if it is still text (unparseable -> empty object)
  2. a list body extends ``results``; otherwise ``results``/``offers`` extend
  3. facets are reconciled into the accumulator
  4. ``pagination`` overwrites, ``highlights`` shallow-merges
  5. a node status record is appended, failed or not
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from aggregation.facets import merge_facets
from aggregation.models import AggregateMetadata, AggregateResult, NodeStatus, RawResponse
from aggregation.ranking import rank_aggregate
from observability.logging import get_logger
from utils.json_utils import safe_json_loads

logger = get_logger(__name__)

COLLECTION_KEYS = ("results", "offers")


def base_structure() -> Dict[str, Any]:
    return {
        "results": [],
        "offers": [],
        "facets": {},
        "pagination": {},
        "highlights": {},
        "metadata": {"nodes": []},
    }


def parse_payload(data: Any) -> Any:
    """Structured bodies pass through; text is parsed; failures become ``{}``."""
    if isinstance(data, (dict, list)):
        return data
    if data is None:
        return {}
    parsed = safe_json_loads(data, None, logger_name="merger")
    if isinstance(parsed, (dict, list)):
        return parsed
    return {}


def as_items(value: Any) -> List[Any]:
    """Collections extend as-is, a lone object becomes one item, scalars contribute nothing."""
    if isinstance(value, list):
        return value
    if isinstance(value, Mapping):
        return [value]
    return []


def _select_facets(payload: Any, response: RawResponse) -> Optional[Any]:
    if isinstance(payload, Mapping) and payload.get("facets") is not None:
        return payload["facets"]
    return response.facets


def merge_response(merged: Dict[str, Any], response: RawResponse) -> Dict[str, Any]:
    """Fold one response into the accumulator in place."""
    payload = parse_payload(response.data)
    logger.debug(f"[Merger] Merge data from {response.url}. Response status {response.status}")

    if isinstance(payload, list):
        merged["results"].extend(payload)
    else:
        for key in COLLECTION_KEYS:
            if key in payload:
                merged[key].extend(as_items(payload[key]))

    new_facets = _select_facets(payload, response)
    if isinstance(new_facets, Mapping):
        merge_facets(merged["facets"], new_facets)

    if isinstance(payload, Mapping):
        pagination = payload.get("pagination")
        if pagination is not None:
            merged["pagination"] = pagination

        highlights = payload.get("highlights")
        if isinstance(highlights, Mapping):
            merged["highlights"].update(highlights)

    merged["metadata"]["nodes"].append(
        NodeStatus(name=response.source, url=response.url, status=response.status, success=response.success)
    )
    return merged


def merge_api_responses(responses: Iterable[Optional[RawResponse]]) -> Dict[str, Any]:
    merged = base_structure()
    for response in responses:
        if response is None:
            continue
        merge_response(merged, response)
    return merged


def summarize_sources(responses: Sequence[RawResponse], total_sources: int) -> Dict[str, Any]:
    successful = sum(1 for r in responses if r.success)
    return {
        "total_sources": total_sources,
        "successful_sources": successful,
        "failed_sources": total_sources - successful,
        "aggregated_at": datetime.now(timezone.utc),
    }


def build_aggregate(responses: Sequence[RawResponse], total_sources: Optional[int] = None) -> AggregateResult:
    """Merge, attach source metadata, then rank the primary collection."""
    merged = merge_api_responses(responses)
    total = len(responses) if total_sources is None else total_sources
    pagination = merged["pagination"]

    aggregate = AggregateResult(
        results=merged["results"],
        offers=merged["offers"],
        facets=merged["facets"],
        pagination=pagination if isinstance(pagination, dict) else {"value": pagination},
        highlights=merged["highlights"],
        metadata=AggregateMetadata(nodes=merged["metadata"]["nodes"], **summarize_sources(responses, total)),
    )
    return rank_aggregate(aggregate)
