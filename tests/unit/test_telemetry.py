"""Unit tests for line framing and telemetry decoding."""

from __future__ import annotations

import pytest

from radarlink.models.events import TelemetryEvent
from radarlink.models.telemetry import NO_OBJECT_DISTANCE, TelemetryReading
from radarlink.protocol.telemetry import MAX_LINE_LENGTH, LineFramer, decode_line


class TestDecodeLine:
    def test_angle_then_distance(self):
        reading = decode_line("Angle: 45 Distance: 120")
        assert reading == TelemetryReading(angle=45, distance=120)

    def test_distance_then_angle(self):
        reading = decode_line("Distance: 87 Angle: 300")
        assert reading.angle == 300
        assert reading.distance == 87

    def test_zero_distance_is_no_object(self):
        reading = decode_line("Angle: 45 Distance: 0")
        assert reading.angle == 45
        assert reading.distance is None
        assert reading.no_object is True

    def test_no_object_distinct_from_short_reading(self):
        empty = decode_line("Angle: 45 Distance: 0")
        near = decode_line("Angle: 45 Distance: 1")
        assert empty != near
        assert near.no_object is False
        assert near.distance == 1

    def test_negative_angle(self):
        assert decode_line("Angle: -15 Distance: 40").angle == -15

    def test_flexible_spacing_and_separator(self):
        reading = decode_line("  angle:10,  DISTANCE :  25\r")
        assert reading == TelemetryReading(angle=10, distance=25)

    def test_legacy_data_form(self):
        assert decode_line("DATA:30,55") == TelemetryReading(angle=30, distance=55)
        assert decode_line("DATA:30,0").no_object is True

    @pytest.mark.parametrize("line", [
        "",
        "   ",
        "Arduino Radar initialized",
        "Received command: S",
        "Angle: 45",
        "Distance: 120",
        "Angle: abc Distance: 10",
        "Angle: 4x5 Distance: 10",
        "Angle: 45 Distance: -3",
        "Angle: 45 Distance: 12.5",
        "Angle: 45 Distance: 10 extra",
        "DATA:30",
    ])
    def test_malformed_lines_yield_none(self, line):
        assert decode_line(line) is None


class TestTelemetryEvent:
    def test_wire_form_keeps_sentinel(self):
        event = TelemetryEvent.from_reading(TelemetryReading(angle=45))
        assert event.to_wire() == {"angle": 45, "distance": NO_OBJECT_DISTANCE, "noObject": True}

    def test_wire_form_real_distance(self):
        event = TelemetryEvent.from_reading(TelemetryReading(angle=90, distance=33))
        assert event.to_wire() == {"angle": 90, "distance": 33, "noObject": False}

    def test_reading_rejects_zero_distance(self):
        with pytest.raises(ValueError):
            TelemetryReading(angle=0, distance=0)

    def test_reading_is_immutable(self):
        reading = TelemetryReading(angle=10, distance=20)
        with pytest.raises(ValueError):
            reading.angle = 11
        assert hash(reading) == hash(TelemetryReading(angle=10, distance=20))


class TestLineFramer:
    def test_splits_on_newline(self):
        framer = LineFramer()
        assert framer.feed(b"Angle: 1 Distance: 2\nAngle: 3 Distance: 4\n") == [
            "Angle: 1 Distance: 2",
            "Angle: 3 Distance: 4",
        ]

    def test_reassembles_partial_lines(self):
        framer = LineFramer()
        assert framer.feed(b"Angle: 1") == []
        assert framer.feed(b"2 Dista") == []
        assert framer.feed(b"nce: 7\r\nAng") == ["Angle: 12 Distance: 7"]
        assert framer.feed(b"le: 5 Distance: 0\n") == ["Angle: 5 Distance: 0"]

    def test_drops_empty_lines(self):
        framer = LineFramer()
        assert framer.feed(b"\n\r\n  \nhello\n\n") == ["hello"]

    def test_overflow_discards_partial_line(self):
        framer = LineFramer()
        assert framer.feed(b"x" * (MAX_LINE_LENGTH + 10)) == []
        # The tail of the oversized line is dropped, the next line survives.
        assert framer.feed(b"yyy\nAngle: 1 Distance: 2\n") == ["Angle: 1 Distance: 2"]

    def test_non_ascii_bytes_replaced(self):
        framer = LineFramer()
        lines = framer.feed(b"\xffAngle: 1 Distance: 2\n")
        assert len(lines) == 1
        assert decode_line(lines[0]) is None

    def test_reset_clears_buffer(self):
        framer = LineFramer()
        framer.feed(b"Angle: 1")
        framer.reset()
        assert framer.feed(b" Distance: 2\n") == ["Distance: 2"]
