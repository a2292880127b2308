"""Tests for the HTTP and WebSocket surface using FastAPI's TestClient."""

from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from fakes import FakeOpener, FakeScanner
from radarlink.api.app import create_app
from radarlink.config import BridgeConfig
from radarlink.core.bridge import DeviceBridge
from radarlink.core.connection import ConnectionStateMachine
from radarlink.exceptions import DiscoveryError
from radarlink.transport.discovery import SerialEndpoint

SLOW_CONFIG = BridgeConfig(retry_delay=30.0, monitor_interval=30.0)


def _app(endpoints):
    opener = FakeOpener()
    machine = ConnectionStateMachine(SLOW_CONFIG, scanner=FakeScanner(endpoints), opener=opener)
    bridge = DeviceBridge(SLOW_CONFIG, machine=machine)
    return create_app(bridge=bridge), bridge, opener


@pytest.fixture
def connected(arduino_endpoint):
    app, bridge, opener = _app([arduino_endpoint])
    with TestClient(app) as client:
        yield client, bridge, opener


@pytest.fixture
def disconnected():
    app, bridge, opener = _app([])
    with TestClient(app) as client:
        yield client, bridge, opener


class TestHealth:
    def test_connected(self, connected):
        client, _, _ = connected
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json() == {
            "status": "ok",
            "device": "connected",
            "isConnected": True,
            "isScanning": False,
            "message": "Connected to /dev/ttyACM0",
            "port": "/dev/ttyACM0",
        }

    def test_disconnected(self, disconnected):
        client, _, _ = disconnected
        data = client.get("/health").json()
        assert data["status"] == "ok"
        assert data["isConnected"] is False
        assert data["device"] == "disconnected"
        assert data["port"] is None

    def test_bridge_stopped_on_shutdown(self, arduino_endpoint):
        app, bridge, opener = _app([arduino_endpoint])
        with TestClient(app):
            assert opener.last.is_open
        assert not opener.last.is_open
        assert not bridge.machine.is_running


class TestSessionChannel:
    def test_status_on_join(self, connected):
        client, _, _ = connected
        with client.websocket_connect("/ws") as ws:
            frame = ws.receive_json()
        assert frame == {
            "event": "status",
            "data": {
                "isConnected": True,
                "isScanning": False,
                "message": "Connected to /dev/ttyACM0",
            },
        }

    def test_start_command(self, connected):
        client, bridge, opener = connected
        with client.websocket_connect("/ws") as ws:
            ws.receive_json()
            ws.send_json({"event": "action", "data": {"command": "start"}})
            frame = ws.receive_json()
        assert frame["event"] == "status"
        assert frame["data"]["isScanning"] is True
        assert opener.last.writes == [b"S\n"]
        assert bridge.broadcaster.is_scanning is True

    def test_invalid_json(self, connected):
        client, _, opener = connected
        with client.websocket_connect("/ws") as ws:
            ws.receive_json()
            ws.send_text("{not json")
            frame = ws.receive_json()
        assert frame == {"event": "error", "data": {"message": "Invalid JSON", "code": 400}}
        assert opener.last.writes == []

    def test_binary_frame_with_json_command(self, connected):
        client, _, opener = connected
        with client.websocket_connect("/ws") as ws:
            ws.receive_json()
            ws.send_bytes(b'{"event": "action", "data": {"command": "start"}}')
            frame = ws.receive_json()
        assert frame["event"] == "status"
        assert frame["data"]["isScanning"] is True
        assert opener.last.writes == [b"S\n"]

    def test_binary_frame_not_utf8(self, connected):
        client, bridge, opener = connected
        with client.websocket_connect("/ws") as ws:
            ws.receive_json()
            ws.send_bytes(b"\xff\xfe\x00")
            frame = ws.receive_json()
            # The session stays usable after a rejected frame.
            ws.send_json({"event": "action", "data": {"command": "left"}})
            ack = ws.receive_json()
        assert frame == {"event": "error", "data": {"message": "Frame is not UTF-8 text", "code": 400}}
        assert ack["event"] == "status"
        assert opener.last.writes == [b"L\n"]

    def test_binary_frame_invalid_json(self, connected):
        client, _, _ = connected
        with client.websocket_connect("/ws") as ws:
            ws.receive_json()
            ws.send_bytes(b"start")
            frame = ws.receive_json()
        assert frame == {"event": "error", "data": {"message": "Invalid JSON", "code": 400}}

    def test_command_without_device(self, disconnected):
        client, _, _ = disconnected
        with client.websocket_connect("/ws") as ws:
            ws.receive_json()
            ws.send_json({"event": "action", "data": {"command": "left"}})
            frame = ws.receive_json()
        assert frame == {"event": "error", "data": {"message": "Device not connected", "code": 503}}


class TestDeviceRoutes:
    def test_list_ports_marks_selection(self, connected, arduino_endpoint):
        client, _, _ = connected
        ports = [SerialEndpoint(device="/dev/ttyS0", description="n/a"), arduino_endpoint]
        with patch("radarlink.api.routes.device.list_endpoints", return_value=ports):
            resp = client.get("/api/ports")
        assert resp.status_code == 200
        data = resp.json()
        assert [p["device"] for p in data] == ["/dev/ttyS0", "/dev/ttyACM0"]
        assert [p["selected"] for p in data] == [False, True]
        assert data[1]["usb_id"] == "2341:0043"

    def test_list_ports_enumeration_failure(self, connected):
        client, _, _ = connected
        with patch(
            "radarlink.api.routes.device.list_endpoints",
            side_effect=DiscoveryError("Serial port enumeration failed: denied"),
        ):
            resp = client.get("/api/ports")
        assert resp.status_code == 503
        assert "enumeration failed" in resp.json()["detail"]

    def test_reconnect_noop_while_connected(self, connected):
        client, _, opener = connected
        resp = client.post("/api/device/reconnect")
        assert resp.status_code == 200
        assert resp.json()["scheduled"] is False
        assert resp.json()["state"] == "connected"
        assert len(opener.links) == 1

    def test_reconnect_scheduled_while_disconnected(self, disconnected):
        client, _, _ = disconnected
        resp = client.post("/api/device/reconnect")
        assert resp.json()["scheduled"] is True
