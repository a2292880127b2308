"""Pydantic data models for radarlink."""

from radarlink.models.events import (
    ACTION_EVENT,
    ERROR_EVENT,
    STATUS_EVENT,
    TELEMETRY_EVENT,
    ActionMessage,
    Envelope,
    ErrorEvent,
    HealthResponse,
    StatusEvent,
    TelemetryEvent,
    envelope,
)
from radarlink.models.telemetry import NO_OBJECT_DISTANCE, TelemetryReading

__all__ = [
    "ACTION_EVENT",
    "ERROR_EVENT",
    "NO_OBJECT_DISTANCE",
    "STATUS_EVENT",
    "TELEMETRY_EVENT",
    "ActionMessage",
    "Envelope",
    "ErrorEvent",
    "HealthResponse",
    "StatusEvent",
    "TelemetryEvent",
    "TelemetryReading",
    "envelope",
]
