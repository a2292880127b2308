"""Fan-out of device state and telemetry to client sessions.

Each session has a bounded FIFO queue drained by its own writer task, so a
slow client never stalls the serial reader or other sessions. Events are
enqueued synchronously, which keeps per-session delivery in decode order
and keeps a command's reply ahead of any later broadcast.
"""

from __future__ import annotations

import asyncio
import contextlib
from typing import Any, Protocol

from pydantic import ValidationError

from radarlink.core.connection import ConnectionState, ConnectionStateMachine
from radarlink.exceptions import (
    DeviceNotConnectedError,
    ErrorCode,
    LinkWriteError,
    UnknownCommandError,
)
from radarlink.models.events import (
    ACTION_EVENT,
    ERROR_EVENT,
    STATUS_EVENT,
    TELEMETRY_EVENT,
    ActionMessage,
    Envelope,
    ErrorEvent,
    StatusEvent,
    TelemetryEvent,
    envelope,
)
from radarlink.models.telemetry import TelemetryReading
from radarlink.protocol.commands import SCAN_STATE_COMMANDS, Command, parse_command
from radarlink.utils.logging import get_logger

logger = get_logger(__name__)

NOT_CONNECTED_MESSAGE = "Device not connected"


class Session(Protocol):
    """A connected client as seen by the broadcaster."""
    id: str

    async def send(self, message: dict[str, Any]) -> None: ...


class _Channel:
    """Outbound queue and writer task for one session."""

    def __init__(self, session: Session, maxsize: int) -> None:
        self.session = session
        self.queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue(maxsize=maxsize)
        self.task: asyncio.Task | None = None
        self.dropped = 0

    def put(self, message: dict[str, Any]) -> None:
        if self.queue.full():
            # Best-effort delivery: the oldest pending event makes room.
            self.queue.get_nowait()
            self.dropped += 1
        self.queue.put_nowait(message)


class SessionBroadcaster:
    """Gateway between client sessions and the connection state machine.

    Owns the shared scan-state flag, which only changes after a confirmed
    ``start``/``stop`` write.
    """

    def __init__(self, machine: ConnectionStateMachine, queue_size: int = 256) -> None:
        self._machine = machine
        self._queue_size = queue_size
        self._channels: dict[str, _Channel] = {}
        self._scanning = False
        self._last_connected = machine.is_connected
        machine.add_state_listener(self.publish_state)
        machine.add_reading_listener(self.publish_reading)

    @property
    def is_scanning(self) -> bool:
        return self._scanning

    @property
    def session_count(self) -> int:
        return len(self._channels)

    def snapshot(self) -> StatusEvent:
        return StatusEvent(
            is_connected=self._machine.is_connected,
            is_scanning=self._scanning,
            message=self._machine.message,
        )

    # ------------------------------------------------------------------
    # Session membership
    # ------------------------------------------------------------------

    def join(self, session: Session) -> None:
        """Register a session and queue the current status for it alone."""
        if session.id in self._channels:
            return
        channel = _Channel(session, self._queue_size)
        channel.task = asyncio.get_running_loop().create_task(
            self._drain(channel), name=f"session-writer:{session.id}"
        )
        self._channels[session.id] = channel
        channel.put(envelope(STATUS_EVENT, self.snapshot()))
        logger.info("session_joined", session=session.id, sessions=len(self._channels))

    async def leave(self, session: Session) -> None:
        """Stop delivery to a session. Device writes already issued are unaffected."""
        channel = self._channels.pop(session.id, None)
        if channel is None:
            return
        if channel.task is not None:
            channel.task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await channel.task
        logger.info(
            "session_left",
            session=session.id,
            sessions=len(self._channels),
            dropped=channel.dropped,
        )

    async def close(self) -> None:
        for channel in list(self._channels.values()):
            await self.leave(channel.session)

    # ------------------------------------------------------------------
    # Inbound
    # ------------------------------------------------------------------

    async def handle_message(self, session: Session, message: Any) -> bool:
        """Dispatch one decoded inbound frame ``{"event": ..., "data": ...}``."""
        try:
            frame = Envelope.model_validate(message)
        except ValidationError:
            self.send_error(session, "Malformed message", ErrorCode.INVALID_INPUT)
            return False

        if frame.event != ACTION_EVENT:
            self.send_error(session, f"Unsupported event: {frame.event}", ErrorCode.INVALID_INPUT)
            return False

        try:
            action = ActionMessage.model_validate(frame.data)
        except ValidationError:
            self.send_error(session, "action requires a 'command' string", ErrorCode.INVALID_INPUT)
            return False
        return await self.handle_action(session, action.command)

    async def handle_action(self, session: Session, command: str) -> bool:
        """Validate and forward one command. Returns True if it reached the device."""
        try:
            cmd = parse_command(command)
        except UnknownCommandError as exc:
            logger.debug("session_command_rejected", session=session.id, command=command)
            self.send_error(session, str(exc), ErrorCode.INVALID_INPUT)
            return False

        if not self._machine.is_connected:
            self.send_error(session, NOT_CONNECTED_MESSAGE, ErrorCode.NOT_CONNECTED)
            return False

        try:
            await self._machine.send_command(cmd)
        except DeviceNotConnectedError:
            self.send_error(session, NOT_CONNECTED_MESSAGE, ErrorCode.NOT_CONNECTED)
            return False
        except LinkWriteError as exc:
            logger.warning("session_command_failed", session=session.id, command=cmd.value, error=str(exc))
            self.send_error(
                session, f"Failed to send {cmd.value} command: {exc}", ErrorCode.WRITE_FAILED
            )
            return False

        status = envelope(STATUS_EVENT, self._apply_scan_state(cmd))
        if cmd in SCAN_STATE_COMMANDS:
            self._broadcast(status)
        else:
            self._send(session, status)
        return True

    # ------------------------------------------------------------------
    # Outbound
    # ------------------------------------------------------------------

    def publish_reading(self, reading: TelemetryReading) -> None:
        self._broadcast(envelope(TELEMETRY_EVENT, TelemetryEvent.from_reading(reading)))

    def publish_state(self, state: ConnectionState, message: str) -> None:
        connected = state == ConnectionState.CONNECTED
        if connected == self._last_connected:
            return
        self._last_connected = connected
        self._broadcast(envelope(STATUS_EVENT, self.snapshot()))

    def send_error(self, session: Session, message: str, code: int) -> None:
        """Queue an ``error`` event for one session only."""
        self._send(session, envelope(ERROR_EVENT, ErrorEvent(message=message, code=int(code))))

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _apply_scan_state(self, cmd: Command) -> StatusEvent:
        if cmd in SCAN_STATE_COMMANDS:
            self._scanning = SCAN_STATE_COMMANDS[cmd]
        return self.snapshot()

    def _send(self, session: Session, message: dict[str, Any]) -> None:
        channel = self._channels.get(session.id)
        if channel is not None:
            channel.put(message)

    def _broadcast(self, message: dict[str, Any]) -> None:
        for channel in list(self._channels.values()):
            channel.put(message)

    async def _drain(self, channel: _Channel) -> None:
        while True:
            message = await channel.queue.get()
            try:
                await channel.session.send(message)
            except Exception as exc:
                logger.info("session_send_failed", session=channel.session.id, error=str(exc))
                if self._channels.get(channel.session.id) is channel:
                    del self._channels[channel.session.id]
                return
