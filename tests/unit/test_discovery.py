"""Unit tests for serial endpoint discovery."""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import patch

import pytest

from radarlink.exceptions import DiscoveryError
from radarlink.transport.discovery import (
    SerialEndpoint,
    discover,
    list_endpoints,
    matches_identity,
    select_endpoint,
)


def _port_info(device, description="n/a", manufacturer=None, vid=None, pid=None):
    return SimpleNamespace(
        device=device,
        description=description,
        manufacturer=manufacturer,
        product=None,
        vid=vid,
        pid=pid,
        serial_number=None,
    )


class TestListEndpoints:
    @patch("radarlink.transport.discovery.comports")
    def test_converts_port_info(self, mock_comports):
        mock_comports.return_value = [
            _port_info("/dev/ttyACM0", "Arduino Uno", "Arduino LLC", 0x2341, 0x0043),
        ]
        endpoints = list_endpoints()
        assert endpoints == [
            SerialEndpoint(
                device="/dev/ttyACM0",
                description="Arduino Uno",
                manufacturer="Arduino LLC",
                vid=0x2341,
                pid=0x0043,
            )
        ]
        assert endpoints[0].usb_id == "2341:0043"

    @patch("radarlink.transport.discovery.comports")
    def test_empty_system(self, mock_comports):
        mock_comports.return_value = []
        assert list_endpoints() == []

    @patch("radarlink.transport.discovery.comports")
    def test_os_failure_becomes_discovery_error(self, mock_comports):
        mock_comports.side_effect = OSError("sysfs unavailable")
        with pytest.raises(DiscoveryError, match="sysfs unavailable"):
            list_endpoints()


class TestMatchesIdentity:
    def test_known_usb_id(self):
        assert matches_identity(SerialEndpoint(device="COM4", vid=0x1A86, pid=0x7523))

    def test_name_hint_case_insensitive(self):
        assert matches_identity(SerialEndpoint(device="/dev/ttyUSB3", description="USB-SERIAL CH340"))

    def test_unrelated_port(self):
        assert not matches_identity(
            SerialEndpoint(device="/dev/ttyS0", description="ttyS0", vid=0x8086, pid=0x1234)
        )


class TestSelectEndpoint:
    def test_empty_list_returns_none(self):
        assert select_endpoint([], platform="linux") is None

    def test_identity_match_beats_order(self, arduino_endpoint):
        other = SerialEndpoint(device="/dev/ttyUSB0", description="Some modem")
        assert select_endpoint([other, arduino_endpoint], platform="linux") == arduino_endpoint

    def test_linux_fallback_pattern(self):
        onboard = SerialEndpoint(device="/dev/ttyS0")
        usb = SerialEndpoint(device="/dev/ttyUSB1")
        assert select_endpoint([onboard, usb], platform="linux") == usb

    def test_windows_fallback_pattern(self):
        eps = [SerialEndpoint(device="COM3"), SerialEndpoint(device="COM7")]
        assert select_endpoint(eps, platform="win32").device == "COM3"

    def test_darwin_fallback_pattern(self):
        eps = [
            SerialEndpoint(device="/dev/cu.Bluetooth-Incoming-Port"),
            SerialEndpoint(device="/dev/cu.usbmodem14101"),
        ]
        assert select_endpoint(eps, platform="darwin").device == "/dev/cu.usbmodem14101"

    def test_nothing_matches(self):
        assert select_endpoint([SerialEndpoint(device="/dev/ttyS0")], platform="linux") is None

    def test_unknown_platform_has_no_fallback(self):
        assert select_endpoint([SerialEndpoint(device="/dev/ttyUSB0")], platform="sunos5") is None

    def test_preferred_port_wins(self, arduino_endpoint):
        pinned = SerialEndpoint(device="/dev/ttyUSB9", description="pinned")
        chosen = select_endpoint([arduino_endpoint, pinned], preferred="/dev/ttyUSB9")
        assert chosen == pinned

    def test_preferred_port_not_enumerated_still_returned(self):
        chosen = select_endpoint([], preferred="/dev/serial0")
        assert chosen == SerialEndpoint(device="/dev/serial0")


class TestDiscover:
    @patch("radarlink.transport.discovery.comports")
    def test_no_ports_returns_none(self, mock_comports):
        mock_comports.return_value = []
        assert discover() is None

    @patch("radarlink.transport.discovery.comports")
    def test_finds_arduino(self, mock_comports):
        mock_comports.return_value = [
            _port_info("/dev/ttyS0"),
            _port_info("/dev/ttyACM0", "Arduino Uno", vid=0x2341, pid=0x0043),
        ]
        assert discover().device == "/dev/ttyACM0"
