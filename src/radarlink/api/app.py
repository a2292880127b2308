"""FastAPI application factory and configuration."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

import structlog
from fastapi import FastAPI, Request, WebSocket
from fastapi.middleware.cors import CORSMiddleware

from radarlink import __version__
from radarlink.config import BridgeConfig
from radarlink.core.bridge import DeviceBridge
from radarlink.utils.logging import get_logger, setup_logging

logger = get_logger(__name__)


def get_bridge(request: Request) -> DeviceBridge:
    """Dependency returning the bridge owned by the running app."""
    return request.app.state.bridge


def get_ws_bridge(websocket: WebSocket) -> DeviceBridge:
    return websocket.app.state.bridge


def create_app(
    config: BridgeConfig | None = None,
    bridge: DeviceBridge | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        config: Bridge settings; read from the environment when omitted.
        bridge: Pre-built bridge, mainly for tests. Built from ``config``
            when omitted.

    Returns:
        Configured FastAPI application instance.
    """
    if bridge is None:
        bridge = DeviceBridge(config or BridgeConfig.from_env())

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """Start the device bridge with the server and stop it on shutdown."""
        if not structlog.is_configured():
            setup_logging()
        logger.info("radarlink_api_starting", port=bridge.config.http_port)
        await bridge.start()
        yield
        await bridge.stop()
        logger.info("radarlink_api_stopped")

    app = FastAPI(
        title="radarlink",
        description="Serial radar device bridge with real-time client sessions",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.bridge = bridge

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    from radarlink.api.routes import device, health, session
    app.include_router(health.router)
    app.include_router(device.router, prefix="/api")
    app.include_router(session.router)

    return app
