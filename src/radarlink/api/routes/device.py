"""Serial port inspection and reconnect endpoints."""

from __future__ import annotations

import asyncio

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from radarlink.api.app import get_bridge
from radarlink.core.bridge import DeviceBridge
from radarlink.exceptions import DiscoveryError
from radarlink.transport.discovery import list_endpoints, select_endpoint

router = APIRouter(tags=["device"])


class PortInfo(BaseModel):
    device: str
    description: str | None = None
    manufacturer: str | None = None
    usb_id: str | None = None
    selected: bool = False


class ReconnectResponse(BaseModel):
    scheduled: bool
    state: str
    message: str


@router.get("/ports", response_model=list[PortInfo])
async def list_ports(bridge: DeviceBridge = Depends(get_bridge)) -> list[PortInfo]:
    """List serial endpoints and mark the one discovery would pick."""
    try:
        endpoints = await asyncio.to_thread(list_endpoints)
    except DiscoveryError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc

    chosen = select_endpoint(endpoints, preferred=bridge.config.serial_port)
    return [
        PortInfo(
            device=ep.device,
            description=ep.description,
            manufacturer=ep.manufacturer,
            usb_id=ep.usb_id,
            selected=chosen is not None and chosen.device == ep.device,
        )
        for ep in endpoints
    ]


@router.post("/device/reconnect", response_model=ReconnectResponse)
async def reconnect(bridge: DeviceBridge = Depends(get_bridge)) -> ReconnectResponse:
    """Request an immediate discovery pass; a no-op while connected."""
    scheduled = bridge.machine.request_reconnect()
    return ReconnectResponse(
        scheduled=scheduled,
        state=bridge.machine.state.value,
        message=bridge.machine.message,
    )
