"""Device connection lifecycle with automatic recovery.

The state machine is the only owner of the serial link. It discovers the
device, opens the link, decodes telemetry from the raw stream and retries
on a fixed delay whenever the device is missing or drops out::

    DISCONNECTED -> DISCOVERING -> CONNECTING -> CONNECTED
          ^              |              |            |
          +---- retry ---+---- ERROR ---+-- close ---+
"""

from __future__ import annotations

import asyncio
from enum import StrEnum
from functools import partial
from typing import Awaitable, Callable

from radarlink.config import BridgeConfig
from radarlink.core.port_monitor import PortMonitor
from radarlink.exceptions import DeviceNotConnectedError, DiscoveryError, LinkOpenError
from radarlink.models.telemetry import TelemetryReading
from radarlink.protocol.commands import Command, encode, parse_command
from radarlink.protocol.telemetry import LineFramer, decode_line
from radarlink.transport.discovery import SerialEndpoint, list_endpoints, select_endpoint
from radarlink.transport.link import LinkHandle
from radarlink.utils.logging import get_logger

logger = get_logger(__name__)

StateListener = Callable[["ConnectionState", str], None]
ReadingListener = Callable[[TelemetryReading], None]
LinkOpener = Callable[[SerialEndpoint], Awaitable[LinkHandle]]


class ConnectionState(StrEnum):
    DISCONNECTED = "disconnected"
    DISCOVERING = "discovering"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    ERROR = "error"


class RetryTimer:
    """Single-shot delayed callback with at most one pending firing.

    The pending timer is an optional handle, so ``arm`` while one is
    outstanding is a no-op.
    """

    def __init__(self, delay: float, callback: Callable[[], None]) -> None:
        self._delay = delay
        self._callback = callback
        self._handle: asyncio.TimerHandle | None = None

    @property
    def delay(self) -> float:
        return self._delay

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def arm(self) -> bool:
        """Schedule the callback unless already pending. Returns True if armed."""
        if self._handle is not None:
            return False
        self._handle = asyncio.get_running_loop().call_later(self._delay, self._fire)
        return True

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self) -> None:
        self._handle = None
        self._callback()


class ConnectionStateMachine:
    """Owns the device lifecycle and the single open ``LinkHandle``.

    Construct once at process start, ``await start()`` inside the event
    loop, and ``await stop()`` at shutdown. Other components use the public
    operations and listener hooks only.

    Args:
        config: Bridge settings (retry delay, monitor interval, serial port).
        scanner: Blocking port enumeration, run in a worker thread.
        opener: Coroutine opening a link for an endpoint.
    """

    def __init__(
        self,
        config: BridgeConfig | None = None,
        *,
        scanner: Callable[[], list[SerialEndpoint]] = list_endpoints,
        opener: LinkOpener | None = None,
    ) -> None:
        self._config = config or BridgeConfig()
        self._scanner = scanner
        self._opener = opener or self._open_serial
        self._state = ConnectionState.DISCONNECTED
        self._message = "Serial port is not open."
        self._link: LinkHandle | None = None
        self._endpoint: SerialEndpoint | None = None
        self._framer = LineFramer()
        self._retry = RetryTimer(self._config.retry_delay, self._on_retry)
        self._monitor = PortMonitor(
            interval=self._config.monitor_interval,
            scanner=scanner,
            is_link_open=self._has_link,
            on_change=self.request_reconnect,
        )
        self._connect_lock = asyncio.Lock()
        self._tasks: set[asyncio.Task] = set()
        self._state_listeners: list[StateListener] = []
        self._reading_listeners: list[ReadingListener] = []
        self._running = False

    # ------------------------------------------------------------------
    # Read-only view
    # ------------------------------------------------------------------

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def message(self) -> str:
        return self._message

    @property
    def is_connected(self) -> bool:
        return (
            self._state == ConnectionState.CONNECTED
            and self._link is not None
            and self._link.is_open
        )

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def endpoint(self) -> SerialEndpoint | None:
        return self._endpoint

    @property
    def port(self) -> str | None:
        return self._link.device if self._link is not None else None

    @property
    def retry_pending(self) -> bool:
        return self._retry.pending

    @property
    def monitor(self) -> PortMonitor:
        return self._monitor

    def add_state_listener(self, listener: StateListener) -> None:
        self._state_listeners.append(listener)

    def add_reading_listener(self, listener: ReadingListener) -> None:
        self._reading_listeners.append(listener)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Begin discovery. Failures are retried in the background."""
        if self._running:
            return
        self._running = True
        logger.info("connection_manager_starting", serial_port=self._config.serial_port)
        await self.connect()

    async def stop(self) -> None:
        """Cancel timers and background work and close the link."""
        self._running = False
        self._retry.cancel()
        await self._monitor.stop()
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

        async with self._connect_lock:
            link, self._link = self._link, None
            if link is not None:
                await link.close()
        self._set_state(ConnectionState.DISCONNECTED, "Serial port is not open.")
        logger.info("connection_manager_stopped")

    def request_reconnect(self) -> bool:
        """Schedule a discovery pass now unless a link is already open.

        Returns True if a pass was scheduled.
        """
        if not self._running or self._has_link():
            return False
        self._spawn(self.connect())
        return True

    async def connect(self) -> bool:
        """Run one discovery and open attempt. Returns True when connected."""
        async with self._connect_lock:
            if not self._running:
                return False
            if self._has_link():
                return True

            self._set_state(ConnectionState.DISCOVERING, "Searching for serial device")
            try:
                endpoints = await asyncio.to_thread(self._scanner)
            except DiscoveryError as exc:
                self._fail(str(exc))
                return False

            self._monitor.observe(endpoints)
            endpoint = select_endpoint(endpoints, preferred=self._config.serial_port)
            if endpoint is None:
                logger.info("serial_device_not_found", retry_in=self._retry.delay)
                self._set_state(
                    ConnectionState.DISCONNECTED,
                    f"No serial device found, retrying in {self._retry.delay:g}s",
                )
                self._arm_retry()
                return False

            self._endpoint = endpoint
            self._set_state(ConnectionState.CONNECTING, f"Connecting to {endpoint.device}")
            try:
                link = await self._opener(endpoint)
            except LinkOpenError as exc:
                self._fail(str(exc))
                return False
            if not self._running:
                await link.close()
                return False

            self._link = link
            self._framer.reset()
            self._retry.cancel()
            link.start_reader(self._on_link_data, partial(self._on_link_closed, link))
            self._set_state(ConnectionState.CONNECTED, f"Connected to {endpoint.device}")
            self._monitor.start()
            return True

    async def send_command(self, command: Command | str) -> Command:
        """Encode and write one command to the device.

        Raises:
            UnknownCommandError: ``command`` is outside the vocabulary.
            DeviceNotConnectedError: No link is open.
            LinkWriteError: The write failed; the link stays as it is.
        """
        cmd = parse_command(command)
        payload = encode(cmd)
        link = self._link
        if link is None or not self.is_connected:
            raise DeviceNotConnectedError()
        await link.write(payload)
        logger.info("command_sent", command=cmd.value, port=link.device)
        return cmd

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _has_link(self) -> bool:
        return self._link is not None and self._link.is_open

    async def _open_serial(self, endpoint: SerialEndpoint) -> LinkHandle:
        return await LinkHandle.open(
            endpoint,
            baud_rate=self._config.baud_rate,
            read_timeout=self._config.read_timeout,
        )

    def _fail(self, reason: str) -> None:
        logger.warning("connection_attempt_failed", error=reason, retry_in=self._retry.delay)
        self._set_state(ConnectionState.ERROR, reason)
        self._set_state(
            ConnectionState.DISCONNECTED,
            f"{reason}, retrying in {self._retry.delay:g}s",
        )
        self._arm_retry()

    def _arm_retry(self) -> None:
        if self._running and self._retry.arm():
            logger.debug("retry_armed", delay=self._retry.delay)

    def _on_retry(self) -> None:
        if self._running:
            self._spawn(self.connect())

    def _on_link_data(self, chunk: bytes) -> None:
        for line in self._framer.feed(chunk):
            reading = decode_line(line)
            if reading is None:
                continue
            for listener in self._reading_listeners:
                try:
                    listener(reading)
                except Exception:
                    logger.exception("reading_listener_failed")

    def _on_link_closed(self, link: LinkHandle, error: Exception | None) -> None:
        if link is not self._link:
            return
        self._link = None
        self._framer.reset()
        self._retry.cancel()
        reason = f"Device disconnected: {error}" if error else "Device disconnected"
        self._set_state(ConnectionState.DISCONNECTED, reason)
        # No retry pending here; a failed attempt arms the single timer.
        self.request_reconnect()

    def _set_state(self, state: ConnectionState, message: str) -> None:
        previous = self._state
        self._state = state
        self._message = message
        if previous != state:
            logger.info("connection_state", previous=previous.value, state=state.value, message=message)
        for listener in self._state_listeners:
            try:
                listener(state, message)
            except Exception:
                logger.exception("state_listener_failed")

    def _spawn(self, coro: Awaitable[object]) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("connection_task_failed", error=str(task.exception()))
