"""Serial transport: endpoint discovery and the exclusive link handle."""

from radarlink.transport.discovery import (
    SerialEndpoint,
    discover,
    list_endpoints,
    select_endpoint,
)
from radarlink.transport.link import LinkHandle, claimed_devices

__all__ = [
    "LinkHandle",
    "SerialEndpoint",
    "claimed_devices",
    "discover",
    "list_endpoints",
    "select_endpoint",
]
