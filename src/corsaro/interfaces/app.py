"""FastAPI application factory."""

from __future__ import annotations

from typing import Any

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from corsaro.infrastructure.config import AppConfig
from corsaro.interfaces.api.middleware import RequestLogMiddleware
from corsaro.interfaces.app_state import AppState
from corsaro.interfaces.composition import lifespan


def create_app(config: AppConfig) -> FastAPI:
    """Build the addon app from a loaded configuration.

    Nothing is opened here; the HTTP client, cache and pipeline are
    created by ``lifespan()`` on startup.
    """
    app = FastAPI(
        title="Corsaro",
        description="Stremio addon for Italian torrent releases via Real-Debrid",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state = AppState()
    app.state.config = config

    # Stremio clients (web included) call the addon cross-origin.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "OPTIONS"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestLogMiddleware)

    from corsaro.interfaces.api.stats import router as stats_router
    from corsaro.interfaces.api.stremio import router as stremio_router

    app.include_router(stats_router, prefix="/api/v1")

    @app.get("/api/v1/healthz")
    async def healthz(request: Request) -> dict[str, Any]:
        """Liveness probe with the number of registered providers."""
        providers = getattr(request.app.state, "providers", None)
        return {
            "status": "ok",
            "environment": config.environment,
            "providers": len(providers) if providers is not None else 0,
        }

    # The addon routes open with a path parameter and must come last.
    app.include_router(stremio_router)
    return app
