"""Baud rates accepted on the command line and by the aux `B` command."""

import sys

from serialdaemon.errors import UnsupportedBaudRateError

_COMMON_BAUDRATES = (9600, 19200, 38400, 57600, 115200, 230400)
# macOS termios has no constants for these two
_LINUX_ONLY_BAUDRATES = (460800, 500000)


def supported_baudrates(platform: str = sys.platform) -> tuple:
    if platform == "darwin":
        return _COMMON_BAUDRATES
    return _COMMON_BAUDRATES + _LINUX_ONLY_BAUDRATES


SUPPORTED_BAUDRATES = supported_baudrates()


def parse_baud(text) -> int:
    """Convert a decimal string to a supported baud rate or raise UnsupportedBaudRateError."""
    if isinstance(text, bytes):
        text = text.decode("ascii", errors="replace")
    value = text.strip()
    if not (value.isascii() and value.isdigit()):
        raise UnsupportedBaudRateError(f"Unknown baud rate: {value!r}")
    baud = int(value)
    if baud not in SUPPORTED_BAUDRATES:
        raise UnsupportedBaudRateError(f"Unknown baud rate: {baud}")
    return baud
