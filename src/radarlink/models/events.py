"""Events exchanged with client sessions.

Every frame on the client channel is an envelope ``{"event": ..., "data": ...}``.
Field names are camelCase on the wire.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from radarlink.models.telemetry import TelemetryReading

STATUS_EVENT = "status"
TELEMETRY_EVENT = "telemetry"
ERROR_EVENT = "error"
ACTION_EVENT = "action"


class _WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


class StatusEvent(_WireModel):
    """Connection and scan state snapshot."""
    is_connected: bool
    is_scanning: bool
    message: str


class TelemetryEvent(_WireModel):
    """A decoded reading; ``distance`` is 0 and ``no_object`` is set when nothing was seen."""
    angle: int
    distance: int
    no_object: bool

    @classmethod
    def from_reading(cls, reading: TelemetryReading) -> TelemetryEvent:
        return cls(
            angle=reading.angle,
            distance=reading.wire_distance,
            no_object=reading.no_object,
        )


class ErrorEvent(_WireModel):
    message: str
    code: int


class ActionMessage(BaseModel):
    """Inbound ``action`` payload."""
    command: str


class Envelope(BaseModel):
    """Frame wrapper used in both directions on the client channel."""
    event: str
    data: dict[str, Any] = {}


def envelope(event: str, payload: _WireModel) -> dict[str, Any]:
    """Wrap an outbound event model into a JSON-ready frame."""
    return {"event": event, "data": payload.to_wire()}


class HealthResponse(BaseModel):
    """Liveness probe result."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    status: str = "ok"
    device: str
    is_connected: bool
    is_scanning: bool
    message: str
    port: str | None = None
