"""Slicing of the cached full aggregate into one requested page."""

from __future__ import annotations

import math
from typing import Any, Mapping, Optional, Tuple

from aggregation.models import AggregateResult, PaginationInfo

DEFAULT_PAGE = 1
DEFAULT_PER_PAGE = 10


def _coerce_positive_int(value: Any, default: int) -> int:
    if isinstance(value, (list, tuple)):
        value = value[0] if value else None
    if value is None or isinstance(value, bool):
        return default
    try:
        number = int(float(str(value).strip()))
    except (TypeError, ValueError, OverflowError):
        return default
    return max(1, number)


def pagination_params(params: Optional[Mapping[str, Any]]) -> Tuple[int, int]:
    """``(page, per_page)`` from request params; invalid values use the defaults, minimum 1."""
    params = params or {}
    page = _coerce_positive_int(params.get("page"), DEFAULT_PAGE)
    per_page = _coerce_positive_int(params.get("per_page"), DEFAULT_PER_PAGE)
    return page, per_page


def paginate(aggregate: AggregateResult, page: int = DEFAULT_PAGE, per_page: int = DEFAULT_PER_PAGE) -> AggregateResult:
    """
    Return a copy of ``aggregate`` with only the primary collection sliced.

    Facets, highlights and metadata stay global. Out-of-range pages give an
    empty slice.
    """
    page = max(1, int(page))
    per_page = max(1, int(per_page))

    field = aggregate.primary_collection()
    items = getattr(aggregate, field)
    total_count = len(items)
    total_pages = math.ceil(total_count / per_page)

    offset = (page - 1) * per_page
    page_items = list(items[offset:offset + per_page])

    info = PaginationInfo(
        current_page=page,
        per_page=per_page,
        total_count=total_count,
        total_pages=total_pages,
        has_next_page=page < total_pages,
        has_prev_page=page > 1,
    )
    return aggregate.model_copy(update={field: page_items, "pagination": info.model_dump()})
