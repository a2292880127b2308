"""Pytest configuration and shared fixtures."""

import pytest

from radarlink.config import BridgeConfig
from radarlink.transport.discovery import SerialEndpoint


@pytest.fixture
def arduino_endpoint():
    """An enumerated Arduino Uno as pyserial reports it on Linux."""
    return SerialEndpoint(
        device="/dev/ttyACM0",
        description="Arduino Uno",
        manufacturer="Arduino (www.arduino.cc)",
        vid=0x2341,
        pid=0x0043,
    )


@pytest.fixture
def fast_config():
    """Config with short timers so retry and monitor paths run quickly."""
    return BridgeConfig(retry_delay=0.05, monitor_interval=0.05, read_timeout=0.01)
