"""Exception hierarchy for the device bridge.

Every error carries an optional ``status_code`` so the session gateway can
report it to clients without a separate lookup table.
"""

from __future__ import annotations

from enum import IntEnum


class ErrorCode(IntEnum):
    """Codes attached to ``error`` events sent to client sessions."""
    INVALID_INPUT = 400
    WRITE_FAILED = 500
    NOT_CONNECTED = 503


class RadarLinkError(Exception):
    """Base exception for all radarlink errors."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class ConfigError(RadarLinkError):
    """A configuration value is missing or malformed."""


class DiscoveryError(RadarLinkError):
    """The OS could not be queried for serial endpoints."""


class LinkError(RadarLinkError):
    """Error in the serial link layer."""


class LinkOpenError(LinkError):
    """Opening the serial endpoint failed."""


class LinkBusyError(LinkOpenError):
    """The serial endpoint is already claimed by another link in this process."""


class LinkWriteError(LinkError):
    """Writing to the open serial link failed."""

    def __init__(self, message: str) -> None:
        super().__init__(message, status_code=ErrorCode.WRITE_FAILED)


class UnknownCommandError(RadarLinkError):
    """The command is not part of the device vocabulary."""

    def __init__(self, command: object) -> None:
        self.command = command
        super().__init__(f"Unknown command: {command!r}", status_code=ErrorCode.INVALID_INPUT)


class DeviceNotConnectedError(RadarLinkError):
    """A command was submitted while no device link is open."""

    def __init__(self, message: str = "Device is not connected") -> None:
        super().__init__(message, status_code=ErrorCode.NOT_CONNECTED)
