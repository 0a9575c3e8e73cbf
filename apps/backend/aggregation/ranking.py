"""
Heuristic ordering of the merged primary collection.

The sort key is read off the first item and applied to every item:
``score`` if present, else the first of ``PRIORITY_KEYS`` present, else the
first key of the first item in JSON document order (dicts keep insertion
order, and ``json.loads`` inserts in document order).
"""

from __future__ import annotations

import math
from typing import Any, List, Mapping, Optional

from aggregation.models import AggregateResult

SCORE_KEY = "score"
PRIORITY_KEYS = ("created_at", "timestamp", "updated_at", "id", "date")


def determine_sort_key(sample: Mapping[str, Any]) -> Optional[str]:
    if SCORE_KEY in sample:
        return SCORE_KEY
    for key in PRIORITY_KEYS:
        if key in sample:
            return key
    return next(iter(sample), None)


def numeric_value(value: Any) -> float:
    """Numbers and numeric strings compare by value; everything else is 0."""
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        return 0.0
    return number if math.isfinite(number) else 0.0


def rank_items(items: List[Any]) -> List[Any]:
    """Return ``items`` sorted descending by the derived key (stable for ties)."""
    if not items or not isinstance(items[0], Mapping):
        return items
    sort_key = determine_sort_key(items[0])
    if sort_key is None:
        return items

    def _value(item: Any) -> float:
        if not isinstance(item, Mapping):
            return 0.0
        return numeric_value(item.get(sort_key))

    return sorted(items, key=_value, reverse=True)


def rank_aggregate(aggregate: AggregateResult) -> AggregateResult:
    """Sort whichever collection is primary (``results`` wins over ``offers``)."""
    field = aggregate.primary_collection()
    items = getattr(aggregate, field)
    if not items:
        return aggregate
    return aggregate.model_copy(update={field: rank_items(items)})
