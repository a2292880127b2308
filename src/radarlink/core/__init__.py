"""Connection lifecycle, port monitoring and session fan-out."""

from radarlink.core.bridge import DeviceBridge
from radarlink.core.broadcaster import Session, SessionBroadcaster
from radarlink.core.connection import ConnectionState, ConnectionStateMachine, RetryTimer
from radarlink.core.port_monitor import PortMonitor

__all__ = [
    "ConnectionState",
    "ConnectionStateMachine",
    "DeviceBridge",
    "PortMonitor",
    "RetryTimer",
    "Session",
    "SessionBroadcaster",
]
