"""Federated aggregation pipeline: fan-out, merge, facets, ranking, cache, pagination."""

from .models import (
    AggregateMetadata,
    AggregateResult,
    Endpoint,
    FacetItem,
    NodeStatus,
    PaginationInfo,
    RawResponse,
)
from .endpoints import filter_by_names, normalize_endpoint, normalize_endpoints
from .cache import ResultCache, compute_fingerprint
from .merger import build_aggregate, merge_api_responses
from .facets import merge_facets
from .ranking import determine_sort_key, rank_aggregate
from .pagination import paginate, pagination_params
from .service import DataAggregator

__all__ = [
    "AggregateMetadata",
    "AggregateResult",
    "Endpoint",
    "FacetItem",
    "NodeStatus",
    "PaginationInfo",
    "RawResponse",
    "filter_by_names",
    "normalize_endpoint",
    "normalize_endpoints",
    "ResultCache",
    "compute_fingerprint",
    "build_aggregate",
    "merge_api_responses",
    "merge_facets",
    "determine_sort_key",
    "rank_aggregate",
    "paginate",
    "pagination_params",
    "DataAggregator",
]
