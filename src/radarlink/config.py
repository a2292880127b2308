"""Bridge configuration loaded from defaults, environment and CLI options."""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from typing import Mapping

from radarlink.exceptions import ConfigError

ENV_PREFIX = "RADARLINK_"

DEFAULT_BAUD_RATE = 115200
DEFAULT_RETRY_DELAY = 5.0
DEFAULT_MONITOR_INTERVAL = 3.0
DEFAULT_HTTP_PORT = 3020


@dataclass(frozen=True)
class BridgeConfig:
    """Runtime settings for the device bridge.

    ``serial_port`` pins discovery to one device path; when unset the
    discovery heuristics pick the endpoint.
    """

    serial_port: str | None = None
    baud_rate: int = DEFAULT_BAUD_RATE
    read_timeout: float = 0.1
    retry_delay: float = DEFAULT_RETRY_DELAY
    monitor_interval: float = DEFAULT_MONITOR_INTERVAL
    host: str = "0.0.0.0"
    http_port: int = DEFAULT_HTTP_PORT
    session_queue_size: int = 256

    def __post_init__(self) -> None:
        if self.baud_rate <= 0:
            raise ConfigError(f"baud_rate must be positive, got {self.baud_rate}")
        if self.retry_delay <= 0:
            raise ConfigError(f"retry_delay must be positive, got {self.retry_delay}")
        if self.monitor_interval <= 0:
            raise ConfigError(f"monitor_interval must be positive, got {self.monitor_interval}")
        if self.read_timeout <= 0:
            raise ConfigError(f"read_timeout must be positive, got {self.read_timeout}")
        if not 0 < self.http_port < 65536:
            raise ConfigError(f"http_port out of range: {self.http_port}")
        if self.session_queue_size < 1:
            raise ConfigError("session_queue_size must be at least 1")

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> BridgeConfig:
        """Build a config from ``RADARLINK_*`` environment variables.

        ``SERIAL_PORT`` is honoured as a fallback for the serial port path.
        """
        env = os.environ if environ is None else environ
        values: dict[str, object] = {}

        serial_port = env.get(f"{ENV_PREFIX}SERIAL_PORT") or env.get("SERIAL_PORT")
        if serial_port:
            values["serial_port"] = serial_port.strip()

        for field_name, cast in (
            ("baud_rate", int),
            ("read_timeout", float),
            ("retry_delay", float),
            ("monitor_interval", float),
            ("http_port", int),
            ("session_queue_size", int),
        ):
            raw = env.get(f"{ENV_PREFIX}{field_name.upper()}")
            if raw is None or raw.strip() == "":
                continue
            try:
                values[field_name] = cast(raw)
            except ValueError as exc:
                raise ConfigError(
                    f"Invalid value for {ENV_PREFIX}{field_name.upper()}: {raw!r}"
                ) from exc

        host = env.get(f"{ENV_PREFIX}HOST")
        if host:
            values["host"] = host

        return cls(**values)

    def with_overrides(self, **overrides: object) -> BridgeConfig:
        """Return a copy with every non-None override applied."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **changes) if changes else self
