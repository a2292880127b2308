"""Device wire protocol: line framing, telemetry decoding, command encoding."""

from radarlink.protocol.commands import COMMAND_TOKENS, Command, encode, parse_command
from radarlink.protocol.telemetry import LineFramer, decode_line

__all__ = [
    "COMMAND_TOKENS",
    "Command",
    "LineFramer",
    "decode_line",
    "encode",
    "parse_command",
]
