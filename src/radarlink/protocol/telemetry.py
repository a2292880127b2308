"""Line framing and telemetry decoding for the radar's text output.

The device prints one reading per line::

    Angle: 45 Distance: 120

Other lines (boot banner, command echoes) are ignored. A distance of 0
means the echo found nothing in range.
"""

from __future__ import annotations

import re

from radarlink.models.telemetry import NO_OBJECT_DISTANCE, TelemetryReading
from radarlink.utils.logging import get_logger

logger = get_logger(__name__)

LINE_DELIMITER = b"\n"
MAX_LINE_LENGTH = 256

_ANGLE = r"Angle\s*:\s*(?P<{name}>[-+]?\d+)"
_DISTANCE = r"Distance\s*:\s*(?P<{name}>\d+)"
_SEP = r"\s*[,;]?\s*"

_LABELLED_RE = re.compile(
    r"^(?:"
    + _ANGLE.format(name="angle") + _SEP + _DISTANCE.format(name="distance")
    + r"|"
    + _DISTANCE.format(name="distance_first") + _SEP + _ANGLE.format(name="angle_last")
    + r")$",
    re.IGNORECASE,
)

# Older firmware emitted "DATA:<angle>,<distance>".
_LEGACY_RE = re.compile(r"^DATA:\s*(?P<angle>[-+]?\d+)\s*,\s*(?P<distance>\d+)$")


class LineFramer:
    """Reassembles newline-delimited text lines from raw serial chunks.

    A partial line longer than ``max_length`` is discarded; the framer
    resynchronizes on the next delimiter.
    """

    def __init__(self, max_length: int = MAX_LINE_LENGTH) -> None:
        self._buf = bytearray()
        self._max_length = max_length
        self._overflowed = False

    def feed(self, chunk: bytes) -> list[str]:
        """Feed raw bytes; return the complete, non-empty lines they finish."""
        lines: list[str] = []
        self._buf.extend(chunk)
        while True:
            idx = self._buf.find(LINE_DELIMITER)
            if idx < 0:
                break
            raw = bytes(self._buf[:idx])
            del self._buf[: idx + 1]
            if self._overflowed:
                self._overflowed = False
                continue
            line = raw.decode("ascii", errors="replace").strip()
            if line:
                lines.append(line)

        if len(self._buf) > self._max_length:
            logger.debug("line_overflow_discarded", size=len(self._buf))
            self._buf.clear()
            self._overflowed = True
        return lines

    def reset(self) -> None:
        self._buf.clear()
        self._overflowed = False


def decode_line(line: str) -> TelemetryReading | None:
    """Decode one text line into a reading, or None if it is not telemetry."""
    text = line.strip()
    if not text:
        return None

    m = _LABELLED_RE.match(text)
    if m:
        angle = m.group("angle") or m.group("angle_last")
        distance = m.group("distance") or m.group("distance_first")
    else:
        m = _LEGACY_RE.match(text)
        if not m:
            logger.debug("telemetry_line_ignored", line=text[:64])
            return None
        angle = m.group("angle")
        distance = m.group("distance")

    distance_cm = int(distance)
    return TelemetryReading(
        angle=int(angle),
        distance=None if distance_cm == NO_OBJECT_DISTANCE else distance_cm,
    )
