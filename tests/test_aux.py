"""Tests for the aux control protocol."""

import asyncio
import logging
from unittest.mock import AsyncMock, MagicMock

import pytest

from serialdaemon.aux import (
    MAX_LINE,
    AuxControlProtocol,
    ControlCommand,
    parse_command,
    read_command_line,
)
from serialdaemon.errors import MalformedCommandError
from serialdaemon.serial_port import SerialTransport


def _protocol() -> AuxControlProtocol:
    serial = MagicMock(spec=SerialTransport)
    serial.change_baud = AsyncMock()
    return AuxControlProtocol(serial)


def test_parse_command_splits_letter_and_argument() -> None:
    assert parse_command(b"B 19200\n") == ControlCommand("B", "19200")
    assert parse_command(b"B 19200\r\n") == ControlCommand("B", "19200")
    assert parse_command(b"Z some args\n") == ControlCommand("Z", "some args")
    assert parse_command(b"B ") == ControlCommand("B", "")


@pytest.mark.parametrize("line", [b"X\n", b"\n", b"B19200\n", b"", b"BB 9600\n"])
def test_parse_command_rejects_missing_space(line: bytes) -> None:
    with pytest.raises(MalformedCommandError):
        parse_command(line)


@pytest.mark.asyncio
async def test_baud_command_changes_rate() -> None:
    protocol = _protocol()

    await protocol.handle_line(b"B 19200\n")

    protocol._serial.change_baud.assert_awaited_once_with(19200)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "line, message",
    [
        (b"B 12345\n", "Unknown baud rate"),
        (b"X\n", "Malformed AUX command"),
        (b"Q 1\n", "Unknown AUX command"),
    ],
)
async def test_rejected_lines_are_logged_and_ignored(
    line: bytes, message: str, caplog: pytest.LogCaptureFixture
) -> None:
    protocol = _protocol()

    with caplog.at_level(logging.ERROR, logger="serialdaemon.aux"):
        await protocol.handle_line(line)

    protocol._serial.change_baud.assert_not_awaited()
    assert message in caplog.text


@pytest.mark.asyncio
async def test_registered_command_is_dispatched() -> None:
    protocol = _protocol()
    handler = AsyncMock()
    protocol.register("R", handler)

    await protocol.handle_line(b"R now\n")

    handler.assert_awaited_once_with("now")


@pytest.mark.asyncio
async def test_read_command_line_splits_lines_and_reports_eof() -> None:
    reader = asyncio.StreamReader(limit=MAX_LINE)
    reader.feed_data(b"B 9600\nB 192")
    reader.feed_data(b"00\nQ")
    reader.feed_eof()

    assert await read_command_line(reader) == b"B 9600\n"
    assert await read_command_line(reader) == b"B 19200\n"
    assert await read_command_line(reader) == b"Q"
    assert await read_command_line(reader) == b""


@pytest.mark.asyncio
async def test_read_command_line_caps_line_length() -> None:
    reader = asyncio.StreamReader(limit=MAX_LINE)
    reader.feed_data(b"x" * 2000 + b"\n")
    reader.feed_eof()

    first = await read_command_line(reader)
    second = await read_command_line(reader)

    assert first == b"x" * MAX_LINE
    assert second == b"x" * (2000 - MAX_LINE) + b"\n"
