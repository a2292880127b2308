"""radarlink CLI - run the bridge and inspect the serial device."""

from __future__ import annotations

import asyncio
import json

import click

from radarlink.config import BridgeConfig
from radarlink.exceptions import ConfigError, DiscoveryError, LinkError
from radarlink.utils.logging import setup_logging


def _load_config(**overrides: object) -> BridgeConfig:
    try:
        return BridgeConfig.from_env().with_overrides(**overrides)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.option("--json-output", is_flag=True, help="Output in JSON format")
@click.pass_context
def cli(ctx: click.Context, debug: bool, json_output: bool) -> None:
    """radarlink - serial radar bridge for real-time clients."""
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug
    ctx.obj["json_output"] = json_output
    setup_logging(level="DEBUG" if debug else "INFO", json_output=json_output)


@cli.command()
@click.option("--host", default=None, help="Bind address (default 0.0.0.0)")
@click.option("--port", "http_port", type=int, default=None, help="HTTP port (default 3020)")
@click.option("--serial-port", default=None, help="Serial device path; skips auto-detection")
@click.option("--baud", type=int, default=None, help="Serial baud rate (default 115200)")
def serve(host: str | None, http_port: int | None, serial_port: str | None, baud: int | None) -> None:
    """Start the bridge server (WebSocket channel + health endpoint)."""
    import uvicorn
    from radarlink.api.app import create_app

    config = _load_config(host=host, http_port=http_port, serial_port=serial_port, baud_rate=baud)
    app = create_app(config)
    uvicorn.run(app, host=config.host, port=config.http_port, log_config=None)


@cli.command()
@click.option("--serial-port", default=None, help="Preferred serial device path")
@click.pass_context
def ports(ctx: click.Context, serial_port: str | None) -> None:
    """List serial ports and show which one would be used."""
    from radarlink.transport.discovery import list_endpoints, select_endpoint

    config = _load_config(serial_port=serial_port)
    try:
        endpoints = list_endpoints()
    except DiscoveryError as exc:
        raise click.ClickException(str(exc)) from exc
    chosen = select_endpoint(endpoints, preferred=config.serial_port)

    if ctx.obj.get("json_output"):
        click.echo(json.dumps({
            "ports": [
                {
                    "device": ep.device,
                    "description": ep.description,
                    "manufacturer": ep.manufacturer,
                    "usb_id": ep.usb_id,
                }
                for ep in endpoints
            ],
            "selected": chosen.device if chosen else None,
        }, indent=2))
        return

    if not endpoints:
        click.echo("No serial ports found.")
    else:
        click.echo(f"Found {len(endpoints)} port(s):")
        for ep in endpoints:
            marker = "*" if chosen is not None and ep.device == chosen.device else " "
            click.echo(
                f" {marker} {ep.device:<20} {ep.usb_id or '-':<10} {ep.description or ''}"
            )
    if chosen is None:
        click.echo("No radar device detected.")
    else:
        click.echo(f"Selected: {chosen.device}")


@cli.command()
@click.option("--serial-port", default=None, help="Serial device path; skips auto-detection")
@click.option("--baud", type=int, default=None)
@click.option("--duration", type=float, default=0.0, help="Seconds to listen (0=until Ctrl+C)")
@click.option("--start/--no-start", "start_scan", default=False, help="Send the start command first")
@click.pass_context
def listen(
    ctx: click.Context,
    serial_port: str | None,
    baud: int | None,
    duration: float,
    start_scan: bool,
) -> None:
    """Open the device and print decoded telemetry."""
    config = _load_config(serial_port=serial_port, baud_rate=baud)
    try:
        asyncio.run(_listen(config, duration, start_scan, ctx.obj.get("json_output", False)))
    except KeyboardInterrupt:
        pass
    except (DiscoveryError, LinkError) as exc:
        raise click.ClickException(str(exc)) from exc


async def _listen(config: BridgeConfig, duration: float, start_scan: bool, json_output: bool) -> None:
    from radarlink.models.events import TelemetryEvent
    from radarlink.protocol.commands import Command, encode
    from radarlink.protocol.telemetry import LineFramer, decode_line
    from radarlink.transport.discovery import discover
    from radarlink.transport.link import LinkHandle

    endpoint = await asyncio.to_thread(discover, config.serial_port)
    if endpoint is None:
        raise click.ClickException("No radar device detected.")

    framer = LineFramer()
    closed = asyncio.Event()

    def on_data(chunk: bytes) -> None:
        for line in framer.feed(chunk):
            reading = decode_line(line)
            if reading is None:
                continue
            if json_output:
                click.echo(json.dumps(TelemetryEvent.from_reading(reading).to_wire()))
            elif reading.no_object:
                click.echo(f"angle={reading.angle:>4}  distance=  --")
            else:
                click.echo(f"angle={reading.angle:>4}  distance={reading.distance:>4} cm")

    def on_closed(error: Exception | None) -> None:
        click.echo(f"Link closed: {error or 'device disconnected'}", err=True)
        closed.set()

    link = await LinkHandle.open(endpoint, baud_rate=config.baud_rate, read_timeout=config.read_timeout)
    async with link:
        click.echo(f"Listening on {endpoint.device} @ {config.baud_rate} baud", err=True)
        link.start_reader(on_data, on_closed)
        if start_scan:
            await link.write(encode(Command.START))
        try:
            if duration > 0:
                try:
                    await asyncio.wait_for(closed.wait(), timeout=duration)
                except asyncio.TimeoutError:
                    pass
            else:
                await closed.wait()
        finally:
            if start_scan and link.is_open:
                await link.write(encode(Command.STOP))


if __name__ == "__main__":
    cli()
