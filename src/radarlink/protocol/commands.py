"""Encoder for the device's single-character command vocabulary."""

from __future__ import annotations

from enum import StrEnum

from radarlink.exceptions import UnknownCommandError

LINE_TERMINATOR = b"\n"


class Command(StrEnum):
    """Abstract commands accepted from client sessions."""
    START = "start"
    STOP = "stop"
    LEFT = "left"
    RIGHT = "right"
    STOP_MOVEMENT = "stop_movement"
    RESET = "reset"


COMMAND_TOKENS: dict[Command, bytes] = {
    Command.START: b"S",
    Command.STOP: b"T",
    Command.LEFT: b"L",
    Command.RIGHT: b"R",
    Command.STOP_MOVEMENT: b"M",
    Command.RESET: b"C",
}

# Commands whose successful write changes the shared scan state.
SCAN_STATE_COMMANDS: dict[Command, bool] = {
    Command.START: True,
    Command.STOP: False,
}


def parse_command(value: object) -> Command:
    """Validate a client-supplied command name.

    Raises:
        UnknownCommandError: If ``value`` is not in the vocabulary.
    """
    if isinstance(value, Command):
        return value
    if not isinstance(value, str):
        raise UnknownCommandError(value)
    try:
        return Command(value)
    except ValueError:
        raise UnknownCommandError(value) from None


def encode(command: Command | str) -> bytes:
    """Return the wire bytes for a command: token plus line terminator."""
    return COMMAND_TOKENS[parse_command(command)] + LINE_TERMINATOR
