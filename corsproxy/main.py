"""CORS proxy FastAPI application.

Creates the proxy service, wires routes, configures logging, and exposes
readiness and Prometheus metrics endpoints.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Optional

import httpx
from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from corsproxy.api.routes import router
from corsproxy.core.config import Settings, load_settings
from corsproxy.core.logging import setup_logging
from corsproxy.services.upstream import UpstreamClient


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build the app; settings default to the environment."""
    settings = settings or load_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan.

        Initializes logging and the app-scoped UpstreamClient (HTTP pool),
        and ensures it lives for the duration of the app.
        """
        setup_logging()
        async with httpx.AsyncClient(timeout=settings.request_timeout_s) as client:
            app.state.upstream = UpstreamClient(client, settings.request_timeout_s)
            yield
            app.state.upstream = None

    app = FastAPI(title="CORS Proxy", version="0.1.0", lifespan=lifespan)
    app.state.settings = settings
    app.include_router(router)

    @app.get("/readyz")
    async def readyz():
        """Readiness endpoint returning a minimal OK payload."""
        return {"status": "ok"}

    @app.get("/metrics")
    async def metrics(_: Request):
        """Prometheus exposition endpoint for proxy process metrics."""
        data = generate_latest()
        return PlainTextResponse(data.decode("utf-8"), media_type=CONTENT_TYPE_LATEST)

    return app


app = create_app()
