"""Process-level wiring of the connection manager and session gateway."""

from __future__ import annotations

from radarlink.config import BridgeConfig
from radarlink.core.broadcaster import SessionBroadcaster
from radarlink.core.connection import ConnectionStateMachine
from radarlink.models.events import HealthResponse
from radarlink.utils.logging import get_logger

logger = get_logger(__name__)


class DeviceBridge:
    """Owns one state machine and one broadcaster for the process lifetime."""

    def __init__(
        self,
        config: BridgeConfig | None = None,
        machine: ConnectionStateMachine | None = None,
    ) -> None:
        self.config = config or BridgeConfig()
        self.machine = machine or ConnectionStateMachine(self.config)
        self.broadcaster = SessionBroadcaster(
            self.machine, queue_size=self.config.session_queue_size
        )

    async def start(self) -> None:
        logger.info("bridge_starting")
        await self.machine.start()

    async def stop(self) -> None:
        await self.broadcaster.close()
        await self.machine.stop()
        logger.info("bridge_stopped")

    def health(self) -> HealthResponse:
        return HealthResponse(
            device=self.machine.state.value,
            is_connected=self.machine.is_connected,
            is_scanning=self.broadcaster.is_scanning,
            message=self.machine.message,
            port=self.machine.port,
        )
