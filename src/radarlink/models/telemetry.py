"""Decoded telemetry readings."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

# Wire value the device reports when the echo found nothing in range.
NO_OBJECT_DISTANCE = 0


class TelemetryReading(BaseModel):
    """One angle/distance sample from a scan sweep.

    ``distance`` is ``None`` when the device reported no object; a real
    reading is always a positive number of centimeters.
    """
    model_config = ConfigDict(frozen=True)

    angle: int
    distance: int | None = Field(default=None, gt=0, description="Centimeters, None = no object")

    @property
    def no_object(self) -> bool:
        return self.distance is None

    @property
    def wire_distance(self) -> int:
        return NO_OBJECT_DISTANCE if self.distance is None else self.distance
