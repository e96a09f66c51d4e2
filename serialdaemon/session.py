"""Accept loop: one session at a time, sequentially, against a shared serial line."""

import asyncio
import logging
import socket
from typing import Optional

from serialdaemon.aux import MAX_LINE
from serialdaemon.bridge import Bridge, Connection, Session, Tracer
from serialdaemon.config import DaemonConfig, configure_logging
from serialdaemon.errors import AcceptError, ListenError
from serialdaemon.serial_port import SerialTransport
from serialdaemon.transform import ByteTransform

logger = logging.getLogger("serialdaemon")

LISTEN_BACKLOG = 5


def open_listener(host: str, port: int) -> socket.socket:
    """Create a non-blocking listening TCP socket."""
    try:
        sock = socket.create_server((host, port), backlog=LISTEN_BACKLOG)
    except OSError as e:
        raise ListenError(f"couldn't make TCP/IP socket on {host}:{port}: {e}") from e
    sock.setblocking(False)
    return sock


async def accept_connection(listener: socket.socket, limit: int = 2**16) -> Connection:
    """Block until a client connects and wrap it in asyncio streams."""
    loop = asyncio.get_running_loop()
    try:
        sock, _ = await loop.sock_accept(listener)
    except OSError as e:
        raise AcceptError(f"accept error: {e}") from e
    reader, writer = await asyncio.open_connection(sock=sock, limit=limit)
    return Connection(reader, writer)


class SessionManager:
    """Accepts the data (then aux) connection and runs one Bridge per session."""

    def __init__(
        self,
        data_listener: socket.socket,
        aux_listener: Optional[socket.socket],
        serial: SerialTransport,
        transform: ByteTransform,
        nonblock: bool = False,
        tracer: Optional[Tracer] = None,
    ):
        self.data_listener = data_listener
        self.aux_listener = aux_listener
        self.serial = serial
        self.transform = transform
        self.nonblock = nonblock
        self.tracer = tracer or Tracer()
        self.sessions = 0

    async def accept_session(self) -> Session:
        """Wait for every required connection; never returns a partial session."""
        data = await accept_connection(self.data_listener)
        logger.debug("New data socket opened: %s", data.peer)
        aux = None
        if self.aux_listener is not None:
            try:
                aux = await accept_connection(self.aux_listener, limit=MAX_LINE)
            except BaseException:
                await data.close()
                raise
            logger.debug("New aux  socket opened: %s", aux.peer)
        return Session(data=data, aux=aux, serial=self.serial)

    async def run_once(self) -> None:
        session = await self.accept_session()
        self.sessions += 1
        try:
            await Bridge(session, self.transform, self.nonblock, self.tracer).run()
        finally:
            await session.close()

    async def serve_forever(self) -> None:
        """Run sessions back to back until an accept fails."""
        while True:
            await self.run_once()
            logger.info("Restarting")


async def run_daemon_async(config: DaemonConfig) -> None:
    """Bind the listeners, open the serial line and serve sessions."""
    listeners = []
    serial = None
    try:
        data_listener = open_listener(config.listen, config.port)
        listeners.append(data_listener)
        aux_listener = None
        if config.aux_port:
            aux_listener = open_listener(config.listen, config.aux_port)
            listeners.append(aux_listener)
        serial = SerialTransport.open(config.serial, config.baud)
        logger.info("Serial opened: %s @ %s baud", config.serial, config.baud)
        logger.info("Listening for data connections on port: %s", config.port)
        if aux_listener is not None:
            logger.info("Listening for aux  connections on port: %s", config.aux_port)
        manager = SessionManager(
            data_listener,
            aux_listener,
            serial,
            ByteTransform(config.strip),
            nonblock=config.nonblock,
        )
        await manager.serve_forever()
    finally:
        for sock in listeners:
            sock.close()
        if serial is not None:
            serial.close()
            logger.info("Serial closed")


def run_daemon(config: DaemonConfig) -> None:
    """Synchronous entry: run until a fatal error or interrupt."""
    configure_logging(config)
    try:
        asyncio.run(run_daemon_async(config))
    except KeyboardInterrupt:
        pass
