"""Exclusive serial link to the radar device.

A ``LinkHandle`` owns one open pyserial port. Blocking pyserial calls run in
worker threads so the event loop never waits on the device. Raw bytes and
the terminal close event are delivered to the owner through callbacks.
"""

from __future__ import annotations

import asyncio
import contextlib
import threading
from typing import Callable

import serial

from radarlink.exceptions import LinkBusyError, LinkOpenError, LinkWriteError
from radarlink.transport.discovery import SerialEndpoint
from radarlink.utils.logging import get_logger

logger = get_logger(__name__)

DataCallback = Callable[[bytes], None]
ClosedCallback = Callable[["Exception | None"], None]

WRITE_TIMEOUT = 1.0

_lock = threading.Lock()
_claimed: set[str] = set()


def _claim(device: str) -> None:
    with _lock:
        if device in _claimed:
            raise LinkBusyError(f"Serial port {device} is already open in this process")
        _claimed.add(device)


def _release(device: str) -> None:
    with _lock:
        _claimed.discard(device)


def claimed_devices() -> list[str]:
    """Device paths currently held open by a LinkHandle."""
    with _lock:
        return sorted(_claimed)


class LinkHandle:
    """One open serial connection. Create with :meth:`open`.

    Usage:
        link = await LinkHandle.open(endpoint)
        link.start_reader(on_data, on_closed)
        await link.write(b"S\\n")
        await link.close()
    """

    def __init__(self, endpoint: SerialEndpoint, port: serial.Serial) -> None:
        self._endpoint = endpoint
        self._port = port
        self._closed = False
        self._released = False
        self._write_lock = asyncio.Lock()
        self._reader_task: asyncio.Task | None = None
        self._on_data: DataCallback | None = None
        self._on_closed: ClosedCallback | None = None

    @classmethod
    async def open(
        cls,
        endpoint: SerialEndpoint,
        baud_rate: int = 115200,
        read_timeout: float = 0.1,
        serial_factory: Callable[..., serial.Serial] = serial.Serial,
    ) -> LinkHandle:
        """Claim and open ``endpoint``.

        Raises:
            LinkBusyError: The endpoint is already open in this process.
            LinkOpenError: The OS refused to open the port.
        """
        _claim(endpoint.device)
        try:
            port = await asyncio.to_thread(
                serial_factory,
                port=endpoint.device,
                baudrate=baud_rate,
                timeout=read_timeout,
                write_timeout=WRITE_TIMEOUT,
            )
        except (serial.SerialException, OSError, ValueError) as exc:
            _release(endpoint.device)
            raise LinkOpenError(f"Failed to open {endpoint.device}: {exc}") from exc
        except BaseException:
            _release(endpoint.device)
            raise

        logger.info("link_opened", port=endpoint.device, baud=baud_rate)
        return cls(endpoint, port)

    @property
    def endpoint(self) -> SerialEndpoint:
        return self._endpoint

    @property
    def device(self) -> str:
        return self._endpoint.device

    @property
    def is_open(self) -> bool:
        return not self._closed and bool(getattr(self._port, "is_open", False))

    def start_reader(self, on_data: DataCallback, on_closed: ClosedCallback) -> None:
        """Start delivering raw chunks to ``on_data``.

        ``on_closed`` is called once, with the causing exception or None,
        when the link ends without :meth:`close` having been called.
        """
        if self._reader_task is not None:
            raise RuntimeError("Reader already started")
        self._on_data = on_data
        self._on_closed = on_closed
        self._reader_task = asyncio.get_running_loop().create_task(
            self._read_loop(), name=f"link-reader:{self.device}"
        )

    async def write(self, data: bytes) -> None:
        """Write ``data`` and flush it to the device.

        Raises:
            LinkWriteError: The link is closed or the write failed.
        """
        if not self.is_open:
            raise LinkWriteError(f"Serial port {self.device} is not open")
        async with self._write_lock:
            try:
                await asyncio.to_thread(self._write_blocking, data)
            except (serial.SerialException, OSError) as exc:
                raise LinkWriteError(f"Write to {self.device} failed: {exc}") from exc
        logger.debug("link_write", port=self.device, size=len(data))

    async def close(self) -> None:
        """Close the link. Idempotent; does not invoke ``on_closed``."""
        if self._closed:
            return
        self._closed = True
        task = self._reader_task
        if task is not None and task is not asyncio.current_task():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._shutdown()
        logger.info("link_closed", port=self.device)

    async def __aenter__(self) -> LinkHandle:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _write_blocking(self, data: bytes) -> None:
        self._port.write(data)
        self._port.flush()

    def _read_blocking(self) -> bytes:
        waiting = self._port.in_waiting
        return self._port.read(waiting or 1)

    async def _read_loop(self) -> None:
        error: Exception | None = None
        try:
            while not self._closed and self._port.is_open:
                chunk = await asyncio.to_thread(self._read_blocking)
                if self._closed:
                    return
                if chunk:
                    self._deliver(chunk)
        except (serial.SerialException, OSError) as exc:
            error = exc

        if self._closed:
            return
        self._closed = True
        self._shutdown()
        logger.warning("link_lost", port=self.device, error=str(error) if error else None)
        if self._on_closed is not None:
            self._on_closed(error)

    def _deliver(self, chunk: bytes) -> None:
        try:
            self._on_data(chunk)
        except Exception:
            logger.exception("link_data_callback_failed", port=self.device)

    def _shutdown(self) -> None:
        if self._released:
            return
        self._released = True
        try:
            self._port.close()
        except (serial.SerialException, OSError) as exc:
            logger.warning("link_close_error", port=self.device, error=str(exc))
        _release(self.device)
