"""Periodic serial port polling that nudges reconnection on hot-plug."""

from __future__ import annotations

import asyncio
import contextlib
from typing import Callable, Iterable

from radarlink.exceptions import DiscoveryError
from radarlink.transport.discovery import SerialEndpoint
from radarlink.utils.logging import get_logger

logger = get_logger(__name__)


class PortMonitor:
    """Re-enumerates serial ports on a fixed interval.

    When the set of device paths differs from the previous poll and no link
    is open, ``on_change`` is called. The monitor never closes a link.

    Args:
        interval: Seconds between polls.
        scanner: Blocking enumeration function (runs in a worker thread).
        is_link_open: Returns True while the owner holds an open link.
        on_change: Called when the port set changed and no link is open.
    """

    def __init__(
        self,
        interval: float,
        scanner: Callable[[], list[SerialEndpoint]],
        is_link_open: Callable[[], bool],
        on_change: Callable[[], object],
    ) -> None:
        self._interval = interval
        self._scanner = scanner
        self._is_link_open = is_link_open
        self._on_change = on_change
        self._last: frozenset[str] | None = None
        self._task: asyncio.Task | None = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def last_seen(self) -> frozenset[str] | None:
        return self._last

    def observe(self, endpoints: Iterable[SerialEndpoint]) -> None:
        """Record a port set seen elsewhere as the comparison baseline."""
        self._last = frozenset(ep.device for ep in endpoints)

    def start(self) -> None:
        if self.is_running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run(), name="port-monitor")
        logger.debug("port_monitor_started", interval=self._interval)

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        logger.debug("port_monitor_stopped")

    async def tick(self) -> bool:
        """Poll once. Returns True if ``on_change`` was triggered."""
        try:
            endpoints = await asyncio.to_thread(self._scanner)
        except DiscoveryError as exc:
            logger.warning("port_monitor_scan_failed", error=str(exc))
            return False

        current = frozenset(ep.device for ep in endpoints)
        previous, self._last = self._last, current
        if previous is None or current == previous:
            return False

        logger.info(
            "serial_ports_changed",
            added=sorted(current - previous),
            removed=sorted(previous - current),
        )
        if self._is_link_open():
            return False
        self._on_change()
        return True

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            await self.tick()
