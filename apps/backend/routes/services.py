"""
Aggregation routes.

GET  /api/v1/services                 registry-resolved nodes, paginated aggregate
POST /api/v1/aggregated_data/custom   caller-supplied nodes, full aggregate
"""

import logging
from typing import Any, Dict, List, Optional

import httpx
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from aggregation.cache import ResultCache
from aggregation.endpoints import normalize_endpoints
from aggregation.models import Endpoint
from aggregation.service import DataAggregator
from dependencies import (
    get_aggregate_cache,
    get_app_settings,
    get_registry_resolver,
    get_upstream_transport,
)
from exceptions import ValidationError
from node_registry.resolver import NodeRegistryResolver
from settings import Settings
from utils.security import redact_secrets_from_text

router = APIRouter(prefix="/api/v1", tags=["aggregation"])
logger = logging.getLogger(__name__)

NODE_FILTER_KEYS = ("nodes", "nodes[]")


class CustomAggregateRequest(BaseModel):
    endpoints: Optional[List[Any]] = None


def collect_query_params(request: Request) -> Dict[str, Any]:
    """Query string as a dict; repeated keys become lists."""
    collected: Dict[str, Any] = {}
    for key in dict.fromkeys(request.query_params.keys()):
        values = request.query_params.getlist(key)
        collected[key] = values[0] if len(values) == 1 else values
    return collected


def pop_node_names(params: Dict[str, Any]) -> List[str]:
    """Remove the routing-only ``nodes`` filter from ``params`` and return its names."""
    names: List[str] = []
    for key in NODE_FILTER_KEYS:
        value = params.pop(key, None)
        if value is None:
            continue
        values = value if isinstance(value, list) else [value]
        names.extend(str(v).strip() for v in values if str(v).strip())
    return names


def require_endpoints(body: Optional[CustomAggregateRequest]) -> List[Endpoint]:
    endpoints = normalize_endpoints(body.endpoints) if body and body.endpoints else []
    if not endpoints:
        raise ValidationError("No endpoints provided")
    return endpoints


def error_response(error: Exception) -> JSONResponse:
    message = redact_secrets_from_text(str(error)) or "Internal server error"
    return JSONResponse(status_code=500, content={"status": "error", "message": message})


@router.get("/services")
async def list_services(
    request: Request,
    cache: ResultCache = Depends(get_aggregate_cache),
    resolver: NodeRegistryResolver = Depends(get_registry_resolver),
    settings: Settings = Depends(get_app_settings),
    transport: Optional[httpx.AsyncBaseTransport] = Depends(get_upstream_transport),
):
    """
    Aggregate every resolved node (or the ``nodes`` subset) and return one page.

    ``nodes`` in the response is the full resolved list, not the subset.
    """
    try:
        params = collect_query_params(request)
        names = pop_node_names(params)
        all_nodes, endpoints = await resolver.resolve(names)

        aggregator = DataAggregator(endpoints, params, cache=cache, settings=settings, transport=transport)
        result = await aggregator.aggregate_data()

        return {
            "status": "success",
            **result.to_payload(),
            "nodes": [node.model_dump() for node in all_nodes],
        }
    except Exception as e:
        logger.error(f"[Services] Aggregation failed: {type(e).__name__}: {redact_secrets_from_text(str(e))}", exc_info=True)
        return error_response(e)


@router.post("/aggregated_data/custom")
async def custom_aggregate(
    body: Optional[CustomAggregateRequest] = None,
    cache: ResultCache = Depends(get_aggregate_cache),
    settings: Settings = Depends(get_app_settings),
    transport: Optional[httpx.AsyncBaseTransport] = Depends(get_upstream_transport),
):
    """Aggregate an explicit endpoint list, bypassing the registry. Not paginated."""
    try:
        endpoints = require_endpoints(body)
    except ValidationError as e:
        return JSONResponse(status_code=e.status_code, content={"error": e.message})

    try:
        aggregator = DataAggregator(endpoints, cache=cache, settings=settings, transport=transport)
        result = await aggregator.aggregate_all()
        return {"status": "success", "result": result.to_payload()}
    except Exception as e:
        logger.error(f"[CustomAggregate] Aggregation failed: {type(e).__name__}: {redact_secrets_from_text(str(e))}", exc_info=True)
        return error_response(e)
