"""Line-oriented control protocol spoken on the aux connection.

Each line is ``<letter> <argument>\\n``. Only ``B <baud>`` is defined; it
changes the serial line's baud rate without touching the data session.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict

from serialdaemon.baudrates import parse_baud
from serialdaemon.errors import (
    CommandError,
    MalformedCommandError,
    UnknownCommandError,
)
from serialdaemon.serial_port import SerialTransport

logger = logging.getLogger("serialdaemon.aux")

BUFFER_SIZE = 1024
MAX_LINE = BUFFER_SIZE - 1


@dataclass(frozen=True)
class ControlCommand:
    code: str
    argument: str


async def read_command_line(reader: asyncio.StreamReader) -> bytes:
    """Read one newline-terminated line of at most MAX_LINE bytes.

    Returns b"" on EOF with nothing read. A line longer than MAX_LINE comes
    back in MAX_LINE-sized pieces.
    """
    try:
        return await reader.readuntil(b"\n")
    except asyncio.IncompleteReadError as e:
        return e.partial
    except asyncio.LimitOverrunError:
        return await reader.readexactly(MAX_LINE)


def parse_command(line: bytes) -> ControlCommand:
    """Split a raw line into its command letter and argument."""
    text = line.decode("latin-1").rstrip("\r\n")
    if len(text) < 2 or text[1] != " ":
        raise MalformedCommandError(f"Malformed AUX command: {text!r}")
    return ControlCommand(code=text[0], argument=text[2:])


class AuxControlProtocol:
    """Parses aux lines and runs the matching command against the serial line."""

    def __init__(self, serial: SerialTransport):
        self._serial = serial
        self._handlers: Dict[str, Callable[[str], Awaitable[None]]] = {
            "B": self._change_baud,
        }

    def register(self, code: str, handler: Callable[[str], Awaitable[None]]):
        self._handlers[code] = handler

    async def handle_line(self, line: bytes) -> None:
        """Execute one control line; rejected lines are logged and dropped."""
        try:
            command = parse_command(line)
            handler = self._handlers.get(command.code)
            if handler is None:
                raise UnknownCommandError(f"Unknown AUX command: {command.code!r}")
            await handler(command.argument)
        except CommandError as e:
            logger.error("%s; ignoring", e)

    async def _change_baud(self, argument: str) -> None:
        baud = parse_baud(argument)
        logger.debug("AUX baud change to %s", baud)
        await self._serial.change_baud(baud)
