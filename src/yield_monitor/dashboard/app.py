"""FastAPI application factory with the JSON API and WebSocket hub."""

from __future__ import annotations

from typing import Any

from fastapi import FastAPI

from yield_monitor.dashboard.routes import api, ws
from yield_monitor.dashboard.routes.ws import YieldHub


def create_dashboard_app(lifespan: Any = None, hub: YieldHub | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        lifespan: Optional async context manager for application lifespan events.
                  Used by main.py to inject startup/shutdown logic.
        hub: WebSocket hub shared with the broadcaster. A new one is created
             when omitted.

    Returns:
        Configured FastAPI application. ``app.state.orchestrator`` must be
        set before the API routes are called.
    """
    app = FastAPI(
        title="Aave Yield Monitor",
        lifespan=lifespan,
    )

    app.state.hub = hub if hub is not None else YieldHub()
    app.state.orchestrator = None

    app.include_router(api.router, prefix="/api")
    app.include_router(ws.router)

    return app
