"""Serial daemon: relay a serial device to a TCP client, with an aux port for baud changes."""

from serialdaemon.config import DaemonConfig
from serialdaemon.session import run_daemon

__all__ = ["DaemonConfig", "run_daemon"]
