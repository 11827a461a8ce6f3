"""FastAPI application entry point."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api.dependencies import Services, build_services
from .api.routes import drivers, health, shipments, tracking
from .config import settings

logger = logging.getLogger(__name__)


def create_app(services: Services | None = None) -> FastAPI:
    """Build the API. ``services`` is wired from settings at startup when omitted."""
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if app.state.services is None:
            app.state.services = build_services(settings)
        wired: Services = app.state.services
        logger.info(f"Store mode: {wired.config.mode.value}")
        wired.connectivity.start()
        await wired.connectivity.reconcile()
        await wired.sessions.restore()
        try:
            yield
        finally:
            await wired.sessions.shutdown()
            await wired.connectivity.stop()

    app = FastAPI(title=settings.app_name, root_path="", lifespan=lifespan)
    app.state.services = services
    if settings.frontend_allowed_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=list(settings.frontend_allowed_origins),
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    # Root endpoint for diagnostics
    @app.get("/")
    def root():
        return {
            "service": settings.app_name,
            "status": "running",
            "api_prefix": settings.api_prefix,
            "health": f"{settings.api_prefix}/health",
            "docs": "/docs",
        }

    app.include_router(health.router, prefix=settings.api_prefix)
    app.include_router(shipments.router, prefix=settings.api_prefix)
    app.include_router(drivers.router, prefix=settings.api_prefix)
    app.include_router(tracking.router, prefix=settings.api_prefix)
    return app


app = create_app()
