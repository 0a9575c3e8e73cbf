"""Structured logging of aggregation outcomes.

One ``aggregation_complete`` record is written per aggregate served. For a
computed aggregate the level follows the outcome: error when every node
failed, warning on partial failure or an empty result, info otherwise. Cache
hits are logged at info with ``cache_hit`` set and no latency breakdown.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from aggregation.models import AggregateResult, RawResponse
from observability.metrics import aggregated_results_count

logger = logging.getLogger("aggregation.metrics")


@dataclass
class NodeMetrics:
    """Outcome of a single node request."""
    name: str
    success: bool
    status: Optional[int]
    latency_ms: Optional[int]
    error: Optional[str] = None


@dataclass
class AggregationMetrics:
    fingerprint: str = ""
    nodes_called: int = 0
    nodes_succeeded: int = 0
    nodes_failed: int = 0
    primary_collection: str = "results"
    result_count: int = 0
    facet_groups: int = 0
    total_latency_ms: float = 0.0
    node_metrics: List[NodeMetrics] = field(default_factory=list)
    cache_hit: bool = False

    def success_rate(self) -> float:
        if self.nodes_called == 0:
            return 0.0
        return self.nodes_succeeded / self.nodes_called

    @classmethod
    def from_run(
        cls,
        fingerprint: str,
        responses: Sequence[RawResponse],
        aggregate: AggregateResult,
        total_latency_ms: float,
    ) -> "AggregationMetrics":
        nodes = [
            NodeMetrics(
                name=r.source,
                success=r.success,
                status=r.status,
                latency_ms=r.latency_ms,
                error=r.error,
            )
            for r in responses
        ]
        succeeded = sum(1 for n in nodes if n.success)
        return cls(
            fingerprint=fingerprint,
            nodes_called=len(nodes),
            nodes_succeeded=succeeded,
            nodes_failed=len(nodes) - succeeded,
            primary_collection=aggregate.primary_collection(),
            result_count=len(aggregate.primary_items()),
            facet_groups=len(aggregate.facets),
            total_latency_ms=total_latency_ms,
            node_metrics=nodes,
        )

    @classmethod
    def from_cached(cls, fingerprint: str, aggregate: AggregateResult) -> "AggregationMetrics":
        """Metrics for a stored aggregate; node outcomes come from its metadata."""
        nodes = [
            NodeMetrics(name=n.name, success=n.success, status=n.status, latency_ms=None)
            for n in aggregate.metadata.nodes
        ]
        succeeded = sum(1 for n in nodes if n.success)
        return cls(
            fingerprint=fingerprint,
            nodes_called=len(nodes),
            nodes_succeeded=succeeded,
            nodes_failed=len(nodes) - succeeded,
            primary_collection=aggregate.primary_collection(),
            result_count=len(aggregate.primary_items()),
            facet_groups=len(aggregate.facets),
            node_metrics=nodes,
            cache_hit=True,
        )


def log_aggregation(m: AggregationMetrics) -> None:
    if not m.cache_hit:
        aggregated_results_count.observe(m.result_count)

    log_data = {
        "event": "aggregation_complete",
        "fingerprint": m.fingerprint,
        "cache_hit": m.cache_hit,
        "nodes": {
            "called": m.nodes_called,
            "succeeded": m.nodes_succeeded,
            "failed": m.nodes_failed,
            "success_rate": round(m.success_rate(), 2),
            "details": [
                {
                    "name": n.name,
                    "success": n.success,
                    "status": n.status,
                    "latency_ms": n.latency_ms,
                }
                for n in m.node_metrics
            ],
        },
        "primary_collection": m.primary_collection,
        "result_count": m.result_count,
        "facet_groups": m.facet_groups,
        "latency_ms": round(m.total_latency_ms, 1),
    }

    if m.cache_hit:
        logger.info("Aggregation served from cache", extra=log_data)
    elif m.nodes_called > 0 and m.nodes_failed == m.nodes_called:
        logger.error("Aggregation failed - all nodes failed", extra=log_data)
    elif m.nodes_failed > 0:
        logger.warning("Aggregation completed with node failures", extra=log_data)
    elif m.result_count == 0:
        logger.warning("Aggregation completed but no results", extra=log_data)
    else:
        logger.info("Aggregation completed successfully", extra=log_data)
