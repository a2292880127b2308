"""Serial endpoint enumeration and device selection."""

from __future__ import annotations

import re
import sys
from dataclasses import dataclass
from typing import Iterable

from serial.tools.list_ports import comports

from radarlink.exceptions import DiscoveryError
from radarlink.utils.logging import get_logger

logger = get_logger(__name__)

# USB VID/PID pairs of boards and USB-serial bridges the radar ships on.
KNOWN_USB_IDS: frozenset[tuple[int, int]] = frozenset({
    (0x2341, 0x0043),  # Arduino Uno R3
    (0x2341, 0x0001),  # Arduino Uno
    (0x2341, 0x0042),  # Arduino Mega 2560 R3
    (0x2341, 0x8036),  # Arduino Leonardo
    (0x2A03, 0x0043),  # Arduino.org Uno
    (0x1A86, 0x7523),  # CH340
    (0x0403, 0x6001),  # FTDI FT232R
    (0x10C4, 0xEA60),  # CP210x
})

NAME_HINTS: tuple[str, ...] = ("arduino", "ch340", "wch", "usb serial", "usb-serial")

_FALLBACK_PATTERNS: dict[str, re.Pattern] = {
    "win32": re.compile(r"^COM\d{1,3}$"),
    "linux": re.compile(r"^/dev/tty(USB|ACM)\d{1,3}$"),
    "darwin": re.compile(r"^/dev/(tty|cu)\.(usbserial|usbmodem|wchusbserial)[\w.\-]*$"),
}


@dataclass(frozen=True)
class SerialEndpoint:
    """One OS-level serial port as seen during a discovery scan."""
    device: str
    description: str | None = None
    manufacturer: str | None = None
    product: str | None = None
    vid: int | None = None
    pid: int | None = None
    serial_number: str | None = None

    @classmethod
    def from_port_info(cls, info) -> SerialEndpoint:
        """Build from a pyserial ``ListPortInfo``."""
        return cls(
            device=info.device,
            description=getattr(info, "description", None),
            manufacturer=getattr(info, "manufacturer", None),
            product=getattr(info, "product", None),
            vid=getattr(info, "vid", None),
            pid=getattr(info, "pid", None),
            serial_number=getattr(info, "serial_number", None),
        )

    @property
    def usb_id(self) -> str | None:
        if self.vid is None or self.pid is None:
            return None
        return f"{self.vid:04X}:{self.pid:04X}"


def list_endpoints() -> list[SerialEndpoint]:
    """Enumerate serial endpoints currently present on the system.

    Raises:
        DiscoveryError: If the OS query itself fails.
    """
    try:
        ports = comports()
    except OSError as exc:
        raise DiscoveryError(f"Serial port enumeration failed: {exc}") from exc
    return [SerialEndpoint.from_port_info(p) for p in ports]


def matches_identity(endpoint: SerialEndpoint) -> bool:
    """Check an endpoint against the known USB IDs and name hints."""
    if endpoint.vid is not None and endpoint.pid is not None:
        if (endpoint.vid, endpoint.pid) in KNOWN_USB_IDS:
            return True
    text = " ".join(
        s for s in (endpoint.description, endpoint.manufacturer, endpoint.product) if s
    ).lower()
    return any(hint in text for hint in NAME_HINTS)


def select_endpoint(
    endpoints: Iterable[SerialEndpoint],
    preferred: str | None = None,
    platform: str | None = None,
) -> SerialEndpoint | None:
    """Pick the endpoint the radar is most likely attached to.

    Order: explicitly configured path, identity match, platform naming
    fallback. A configured path that is not enumerated is still returned
    so the open attempt decides whether it exists.
    """
    candidates = list(endpoints)

    if preferred:
        for ep in candidates:
            if ep.device == preferred:
                return ep
        logger.debug("preferred_port_not_enumerated", port=preferred)
        return SerialEndpoint(device=preferred)

    for ep in candidates:
        if matches_identity(ep):
            logger.debug("port_identity_match", port=ep.device, usb_id=ep.usb_id)
            return ep

    pattern = _FALLBACK_PATTERNS.get(platform or sys.platform)
    if pattern is not None:
        for ep in candidates:
            if pattern.match(ep.device):
                logger.debug("port_platform_fallback", port=ep.device)
                return ep

    return None


def discover(preferred: str | None = None) -> SerialEndpoint | None:
    """Enumerate endpoints and select the radar's, or None if nothing fits."""
    return select_endpoint(list_endpoints(), preferred=preferred)
