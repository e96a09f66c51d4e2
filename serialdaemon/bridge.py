"""Event loop that relays one session between a TCP client and the serial line."""

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from serialdaemon.aux import BUFFER_SIZE, AuxControlProtocol, read_command_line
from serialdaemon.errors import SessionEnded
from serialdaemon.serial_port import SerialTransport
from serialdaemon.transform import ByteTransform, describe_bytes

logger = logging.getLogger("serialdaemon.bridge")


@dataclass
class Connection:
    reader: asyncio.StreamReader
    writer: asyncio.StreamWriter

    @property
    def peer(self):
        return self.writer.get_extra_info("peername", ("?", "?"))

    async def close(self) -> None:
        self.writer.close()
        try:
            await self.writer.wait_closed()
        except (ConnectionError, OSError):
            pass


@dataclass
class Session:
    """One data connection, the optional aux connection and the shared serial line."""

    data: Connection
    aux: Optional[Connection]
    serial: SerialTransport

    async def close(self) -> None:
        """Close the client connections; the serial line stays open."""
        await self.data.close()
        if self.aux is not None:
            await self.aux.close()


class Tracer:
    """Debug trace of relayed bytes, one logger per direction."""

    def __init__(
        self,
        inbound: logging.Logger = logging.getLogger("serialdaemon.trace.in"),
        outbound: logging.Logger = logging.getLogger("serialdaemon.trace.out"),
    ):
        self._in = inbound
        self._out = outbound

    def inbound(self, data: bytes, written: int) -> None:
        if self._in.isEnabledFor(logging.DEBUG):
            self._in.debug("serial ==> %s", describe_bytes(data))
            self._in.debug("sent %d/%d", written, len(data))

    def outbound(self, data: bytes, written: int) -> None:
        if self._out.isEnabledFor(logging.DEBUG):
            self._out.debug("serial <== %s", describe_bytes(data))
            self._out.debug("wrote %d/%d", written, len(data))

    def stripped(self, count: int) -> None:
        if count:
            self._out.debug("stripped %d byte(s)", count)


class Bridge:
    """Services the data, aux and serial sources until one of them fails."""

    def __init__(
        self,
        session: Session,
        transform: ByteTransform,
        nonblock: bool = False,
        tracer: Optional[Tracer] = None,
    ):
        self.session = session
        self.transform = transform
        self.nonblock = nonblock
        self.tracer = tracer or Tracer()
        self.aux_protocol = AuxControlProtocol(session.serial)
        self._dropping = False

    def _start_reads(self, pending: dict, names) -> None:
        session = self.session
        for name in names:
            if name == "aux":
                coro = read_command_line(session.aux.reader)
            elif name == "data":
                coro = session.data.reader.read(BUFFER_SIZE)
            else:
                coro = session.serial.read(BUFFER_SIZE)
            pending[name] = asyncio.create_task(coro, name=f"read-{name}")

    async def run(self) -> None:
        """Relay until EOF or a read error on any source."""
        sources = ["data", "serial"]
        if self.session.aux is not None:
            sources.insert(0, "aux")
        pending = {}
        self._start_reads(pending, sources)
        try:
            while True:
                await asyncio.wait(
                    pending.values(), return_when=asyncio.FIRST_COMPLETED
                )
                ready = [name for name in sources if pending[name].done()]
                for name in ready:
                    data = pending.pop(name).result()
                    if not data:
                        raise SessionEnded(f"{name} connection closed")
                    await self._dispatch(name, data)
                self._start_reads(pending, ready)
        except SessionEnded as e:
            logger.info("Session ended: %s", e)
        except (ConnectionError, OSError) as e:
            logger.info("Session ended: %s", e)
        finally:
            for task in pending.values():
                task.cancel()
            await asyncio.gather(*pending.values(), return_exceptions=True)

    async def _dispatch(self, name: str, data: bytes) -> None:
        if name == "aux":
            await self.aux_protocol.handle_line(data)
        elif name == "data":
            await self._to_serial(data)
        else:
            await self._to_client(data)

    async def _to_serial(self, data: bytes) -> None:
        out = self.transform.to_serial(data)
        self.tracer.stripped(len(data) - len(out))
        written = await self.session.serial.write(out) if out else 0
        self.tracer.outbound(out, written)

    async def _to_client(self, data: bytes) -> None:
        out = self.transform.to_client(data)
        writer = self.session.data.writer
        if self.nonblock:
            # bytes still queued in the transport mean the socket would block
            if writer.transport.get_write_buffer_size() > 0:
                if not self._dropping:
                    self._dropping = True
                    logger.error("Dropping bytes writing to socket")
                self.tracer.inbound(out, 0)
                return
            writer.write(out)
        else:
            writer.write(out)
            await writer.drain()
        self.tracer.inbound(out, len(out))
