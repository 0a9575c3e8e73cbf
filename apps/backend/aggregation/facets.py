"""Facet reconciliation: dedupe by ``eid``, sum counts, order by count."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional

from aggregation.models import FacetItem

logger = logging.getLogger(__name__)

FacetGroups = Dict[str, List[FacetItem]]


def coerce_count(value: Any) -> int:
    """Counts arrive as ints, floats or numeric strings; anything else is 0."""
    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return max(0, value)
    try:
        return max(0, int(float(value)))
    except (TypeError, ValueError, OverflowError):
        return 0


def _facet_eid(item: Mapping[str, Any]) -> Optional[str]:
    eid = item.get("eid")
    if eid is None:
        return None
    eid = str(eid)
    return eid if eid.strip() else None


def build_facet_item(item: Any) -> Optional[FacetItem]:
    """Map one raw facet mapping (children included) to a FacetItem; None without an eid."""
    if isinstance(item, FacetItem):
        return item.model_copy(deep=True)
    if not isinstance(item, Mapping):
        return None
    eid = _facet_eid(item)
    if eid is None:
        # Cannot be deduplicated without an eid
        return None

    name = item.get("name")
    return FacetItem(
        eid=eid,
        name=str(name) if name is not None else None,
        count=coerce_count(item.get("count")),
        children=build_children(item.get("children")),
    )


def build_children(raw: Any) -> List[FacetItem]:
    if not isinstance(raw, list):
        return []
    children = (build_facet_item(child) for child in raw)
    return [child for child in children if child is not None]


def merge_facet_item(group: List[FacetItem], item: Any) -> None:
    """Fold one incoming facet item into ``group`` in place."""
    incoming = build_facet_item(item)
    if incoming is None:
        return

    existing = next((f for f in group if f.eid == incoming.eid), None)
    if existing is None:
        group.append(incoming)
        return

    existing.count += incoming.count
    if not existing.name and incoming.name:
        existing.name = incoming.name
    # Children are substituted wholesale, never merged element-wise
    if not existing.children:
        existing.children = incoming.children


def merge_facets(accumulator: FacetGroups, new_facets: Any) -> FacetGroups:
    """
    Merge a ``{group: [item, ...]}`` mapping into ``accumulator``.

    Each touched group is re-sorted by count descending; the sort is stable,
    so equal counts keep their first-seen order.
    """
    if not isinstance(new_facets, Mapping):
        return accumulator

    for group_key, items in new_facets.items():
        group = accumulator.setdefault(str(group_key), [])
        if not isinstance(items, list):
            logger.debug(f"[Facets] Ignoring non-list facet group {group_key!r}")
            continue

        for item in items:
            merge_facet_item(group, item)

        group.sort(key=lambda f: f.count, reverse=True)

    return accumulator
