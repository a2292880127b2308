"""Liveness probe."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from radarlink.api.app import get_bridge
from radarlink.core.bridge import DeviceBridge
from radarlink.models.events import HealthResponse

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health(bridge: DeviceBridge = Depends(get_bridge)) -> HealthResponse:
    """Current connection and scanning status."""
    return bridge.health()
