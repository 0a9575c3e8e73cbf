"""Typed records for the federated aggregation pipeline."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

PrimaryCollection = Literal["results", "offers"]
PAGINATION_KEYS = frozenset({"page", "per_page"})


class Endpoint(BaseModel):
    """A named backend node. Identity for fingerprinting is ``(name, url)``."""

    model_config = ConfigDict(frozen=True)

    name: str
    url: str
    pid: Optional[str] = None

    @field_validator("name", "url", mode="before")
    @classmethod
    def _stringify(cls, value: Any) -> str:
        return "" if value is None else str(value).strip()

    @field_validator("pid", mode="before")
    @classmethod
    def _stringify_pid(cls, value: Any) -> Optional[str]:
        if value is None:
            return None
        return str(value)


class RawResponse(BaseModel):
    """One fetch outcome per endpoint, in endpoint order."""

    source: str
    url: str
    status: Optional[int] = None
    success: bool = False
    data: Any = None
    error: Optional[str] = None
    facets: Optional[Dict[str, Any]] = None
    latency_ms: Optional[int] = None


class FacetItem(BaseModel):
    """
    A deduplicated facet entry; ``eid`` is unique within its group.

    ``children`` are FacetItems too, but are never deduplicated: they are
    replaced wholesale when merging.
    """

    eid: str
    name: Optional[str] = None
    count: int = Field(0, ge=0)
    children: List[FacetItem] = Field(default_factory=list)


class NodeStatus(BaseModel):
    name: str
    url: str
    status: Optional[int] = None
    success: bool = False


class AggregateMetadata(BaseModel):
    nodes: List[NodeStatus] = Field(default_factory=list)
    total_sources: int = 0
    successful_sources: int = 0
    failed_sources: int = 0
    aggregated_at: Optional[datetime] = None


class PaginationInfo(BaseModel):
    current_page: int
    per_page: int
    total_count: int
    total_pages: int
    has_next_page: bool
    has_prev_page: bool


class AggregateResult(BaseModel):
    """
    Merged view over every node response.

    ``results`` and ``offers`` are alternative primary collections; the one
    that is paginated and ranked is chosen by :meth:`primary_collection`.
    """

    results: List[Any] = Field(default_factory=list)
    offers: List[Any] = Field(default_factory=list)
    facets: Dict[str, List[FacetItem]] = Field(default_factory=dict)
    pagination: Dict[str, Any] = Field(default_factory=dict)
    highlights: Dict[str, Any] = Field(default_factory=dict)
    metadata: AggregateMetadata = Field(default_factory=AggregateMetadata)

    def primary_collection(self) -> PrimaryCollection:
        if self.results or not self.offers:
            return "results"
        return "offers"

    def primary_items(self) -> List[Any]:
        return getattr(self, self.primary_collection())

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")
