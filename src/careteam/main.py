from __future__ import annotations

import logging
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src.careteam.api.v1.routes_assignments import router as assignments_router_v1
from src.careteam.api.v1.routes_communications import router as communications_router_v1
from src.careteam.api.v1.routes_notifications import router as notifications_router_v1
from src.careteam.api.v1.routes_providers import router as providers_router_v1
from src.careteam.api.v1.routes_recommendations import router as recommendations_router_v1
from src.careteam.api.v1.routes_system import router as system_router_v1
from src.careteam.api.v1.routes_users import router as users_router_v1
from src.careteam.config import settings
from src.careteam.services.container import CareCoordinationServices, build_services


def create_app(services: Optional[CareCoordinationServices] = None) -> FastAPI:
    """Build the API around one service container.

    Tests pass their own container (usually over an in-memory store); the
    module-level ``app`` uses the configured store backend.
    """

    cfg = services.settings if services is not None else settings
    logging.getLogger("careteam").setLevel(cfg.log_level.upper())

    app = FastAPI(title="Care Team Coordination API")
    app.state.services = services if services is not None else build_services(settings=cfg)

    @app.on_event("shutdown")
    async def on_shutdown() -> None:
        """Close the urgent-notification client when the server stops."""

        app.state.services.close()

    # CORS configuration: permissive by default for development. Tighten via
    # CORS_ALLOW_ORIGINS in production deployments.
    allow_origins = [origin.strip() for origin in cfg.cors_allow_origins.split(",") if origin.strip()] or ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health", tags=["system"])
    async def health_check() -> dict:
        """Basic liveness probe for the API root."""
        return {"status": "ok"}

    # Versioned API routers
    app.include_router(system_router_v1, prefix="/api/v1")
    app.include_router(providers_router_v1, prefix="/api/v1")
    app.include_router(users_router_v1, prefix="/api/v1")
    app.include_router(assignments_router_v1, prefix="/api/v1")
    app.include_router(recommendations_router_v1, prefix="/api/v1")
    app.include_router(communications_router_v1, prefix="/api/v1")
    app.include_router(notifications_router_v1, prefix="/api/v1")
    return app


app = create_app()
