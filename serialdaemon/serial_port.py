"""pyserial-backed serial line shared by every session."""

import asyncio
import logging
import termios
from typing import Optional

import serial

from serialdaemon.baudrates import SUPPORTED_BAUDRATES
from serialdaemon.errors import DeviceError, SerialEOFError

logger = logging.getLogger("serialdaemon.serial")

# termios speed constant -> baud rate
LINE_SPEEDS = {getattr(termios, f"B{rate}"): rate for rate in SUPPORTED_BAUDRATES}


def _set_ready(fut: asyncio.Future) -> None:
    if not fut.done():
        fut.set_result(None)


class SerialTransport:
    """Owns the serial handle and its current baud rate.

    Reads, writes and baud changes are serialized through one lock so the
    rate is never reconfigured while I/O on the handle is in flight. Reads
    wait for readiness on the event loop and only touch the handle once it
    has data, so nothing is left running on the device when a read is
    cancelled.
    """

    def __init__(self, ser: serial.Serial):
        self._serial = ser
        self._lock = asyncio.Lock()
        self._baudrate = ser.baudrate

    @classmethod
    def open(cls, path: str, baud: int) -> "SerialTransport":
        """Open the device raw 8N1 with no flow control."""
        try:
            ser = serial.Serial(
                port=path,
                baudrate=baud,
                bytesize=serial.EIGHTBITS,
                parity=serial.PARITY_NONE,
                stopbits=serial.STOPBITS_ONE,
                xonxoff=False,
                rtscts=False,
                dsrdtr=False,
                timeout=0,
                write_timeout=None,
            )
        except (serial.SerialException, OSError, ValueError) as e:
            raise DeviceError(f"couldn't open serial port {path}: {e}") from e
        ser.reset_input_buffer()
        ser.reset_output_buffer()
        return cls(ser)

    @property
    def baudrate(self) -> int:
        return self._baudrate

    async def _readable(self) -> None:
        loop = asyncio.get_running_loop()
        fd = self._serial.fileno()
        ready = loop.create_future()
        loop.add_reader(fd, _set_ready, ready)
        try:
            await ready
        finally:
            loop.remove_reader(fd)

    async def read(self, max_bytes: int) -> bytes:
        """Wait until the device is readable and return up to max_bytes."""
        while True:
            await self._readable()
            async with self._lock:
                try:
                    data = self._serial.read(max_bytes)
                except (serial.SerialException, OSError) as e:
                    raise SerialEOFError(f"serial read failed: {e}") from e
            # input flushed by a baud change between readiness and the read
            if data:
                return data

    async def write(self, data: bytes) -> int:
        """Write data; a short write is reported but not treated as an error."""
        async with self._lock:
            fut = asyncio.ensure_future(asyncio.to_thread(self._write, data))
            try:
                written = await asyncio.shield(fut)
            except asyncio.CancelledError:
                # hold the lock until the device call has really finished
                await asyncio.wait([fut])
                raise
        if written < len(data):
            logger.debug("Short serial write: %d/%d", written, len(data))
        return written

    def _write(self, data: bytes) -> int:
        try:
            written = self._serial.write(data)
        except serial.SerialTimeoutException:
            logger.debug("Serial write timed out; %d bytes dropped", len(data))
            return 0
        except (serial.SerialException, OSError) as e:
            raise SerialEOFError(f"serial write failed: {e}") from e
        return len(data) if written is None else written

    def _line_speed(self) -> Optional[int]:
        """Rate the device is actually configured for, None if in and out differ."""
        attrs = termios.tcgetattr(self._serial.fileno())
        ispeed, ospeed = attrs[4], attrs[5]
        if ispeed != ospeed:
            return None
        return LINE_SPEEDS.get(ispeed)

    async def change_baud(self, baud: int) -> None:
        """Flush pending I/O and switch input and output to baud.

        Failures are only logged: the session keeps running whether or not
        the device accepted the new rate.
        """
        async with self._lock:
            try:
                self._serial.reset_input_buffer()
                self._serial.reset_output_buffer()
                self._serial.baudrate = baud
            except (serial.SerialException, OSError, ValueError) as e:
                logger.warning("Bad serial settings; rate change may have failed: %s", e)
            try:
                applied = self._line_speed()
            except (termios.error, OSError) as e:
                logger.warning("Bad termios; rate change may have failed: %s", e)
                return
            if applied is not None:
                self._baudrate = applied
        if applied != baud:
            logger.warning(
                "Rate change may have failed: requested %s, device reports %s",
                baud,
                applied,
            )
            return
        logger.info("Serial baud rate changed to %s", applied)

    def close(self) -> None:
        self._serial.close()
