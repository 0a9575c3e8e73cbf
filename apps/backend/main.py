"""
Federated aggregator API.

Fans a query out to every backend node, merges the answers, and serves
paginated slices of the cached aggregate.
"""
from datetime import datetime, timezone
from typing import Optional

import httpx
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from pydantic import BaseModel

from dependencies import build_aggregate_cache
from exceptions import FederationError
from node_registry.resolver import NodeRegistryResolver
from observability.logging import get_logger
from observability.metrics import metrics_registry
from observability.middleware import ObservabilityMiddleware
from routes.services import router as services_router
from settings import Settings, get_settings
from utils.security import redact_secrets_from_text

logger = get_logger(__name__)


class HealthResponse(BaseModel):
    status: str
    version: str


def create_app(
    settings: Optional[Settings] = None,
    *,
    upstream_transport: Optional[httpx.AsyncBaseTransport] = None,
    registry_transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    settings = settings or get_settings()

    app = FastAPI(
        title="Federated Aggregator",
        description="Concurrent fan-out, merge and pagination over backend search nodes",
        version=settings.version,
    )

    app.state.settings = settings
    app.state.aggregate_cache = build_aggregate_cache(settings)
    app.state.registry_resolver = NodeRegistryResolver(settings, transport=registry_transport)
    app.state.upstream_transport = upstream_transport

    app.add_middleware(ObservabilityMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(services_router)

    @app.get("/", include_in_schema=False)
    async def root():
        return RedirectResponse(url="/api/v1/health")

    @app.get("/health", response_model=HealthResponse)
    @app.get("/api/v1/health", response_model=HealthResponse)
    async def health_check():
        return {"status": "healthy", "version": settings.version}

    @app.get("/metrics", include_in_schema=False)
    async def metrics():
        return Response(content=generate_latest(metrics_registry), media_type=CONTENT_TYPE_LATEST)

    @app.exception_handler(FederationError)
    async def federation_error_handler(request: Request, exc: FederationError):
        logger.warning(f"[API] {type(exc).__name__} on {request.url.path}: {exc.message}")
        return JSONResponse(
            status_code=exc.status_code,
            content={"status": "error", "message": redact_secrets_from_text(exc.message)},
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Unhandled errors: full traceback server-side, message string only to the client."""
        error_id = f"ERR-{datetime.now(timezone.utc).strftime('%Y%m%d%H%M%S')}-{id(exc)}"
        logger.error(
            f"[API] Unhandled exception {error_id}",
            extra={"error_id": error_id, "path": request.url.path, "method": request.method},
            exc_info=exc,
        )
        return JSONResponse(
            status_code=500,
            content={
                "status": "error",
                "message": redact_secrets_from_text(str(exc)) or "Internal server error",
                "error_id": error_id,
            },
        )

    @app.on_event("startup")
    async def startup_event():
        mode = "static" if settings.static_config else "dynamic"
        logger.info(f"Federated aggregator starting (environment={settings.environment}, registry mode={mode})")

    return app


app = create_app()


if __name__ == "__main__":
    import os

    import uvicorn

    uvicorn.run(app, host=os.getenv("HOST", "0.0.0.0"), port=int(os.getenv("PORT", "8000")), log_config=None)
