"""Configuration and command-line argument parsing for the serial daemon."""

import argparse
import logging
from dataclasses import dataclass
from typing import Optional

from serialdaemon.baudrates import SUPPORTED_BAUDRATES


DEFAULT_LISTEN = "0.0.0.0"

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"

USAGE_NOTES = """\
notes:
  1) If you have declared an auxiliary port, your client program must
     connect to the primary TCP/IP port, THEN the auxiliary port, and both
     must be connected before any traffic is sent.
  2) Baud rates 460800 and 500000 are not available on macOS.
"""


@dataclass(frozen=True)
class DaemonConfig:
    serial: str
    port: int
    baud: int
    aux_port: Optional[int] = None
    listen: str = DEFAULT_LISTEN
    strip: bool = False
    indebug: bool = False
    outdebug: bool = False
    nonblock: bool = False

    @classmethod
    def from_args(cls, args: argparse.Namespace) -> "DaemonConfig":
        return cls(
            serial=args.serial,
            port=args.port,
            baud=args.baud,
            aux_port=args.aux,
            listen=args.listen,
            strip=args.strip,
            indebug=args.indebug or args.debug,
            outdebug=args.outdebug or args.debug,
            nonblock=args.nonblock,
        )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="serialdaemon",
        description="Relay bytes between a serial device and a TCP client.",
        epilog=USAGE_NOTES,
        formatter_class=argparse.RawDescriptionHelpFormatter,
        allow_abbrev=False,
    )
    parser.add_argument("-serial", required=True, help="Serial device path")
    parser.add_argument("-port", type=int, required=True, help="TCP/IP data port")
    parser.add_argument("-aux", type=int, default=None, help="Auxiliary TCP/IP control port")
    parser.add_argument(
        "-baud",
        type=int,
        required=True,
        help="Baud rate, one of: " + ", ".join(str(b) for b in SUPPORTED_BAUDRATES),
    )
    parser.add_argument(
        "-listen",
        default=DEFAULT_LISTEN,
        help=f"TCP listen address (default: {DEFAULT_LISTEN})",
    )
    parser.add_argument("-strip", action="store_true", help="Normalize newlines in both directions")
    parser.add_argument("-indebug", action="store_true", help="Trace serial-to-client traffic")
    parser.add_argument("-outdebug", action="store_true", help="Trace client-to-serial traffic")
    parser.add_argument("-debug", action="store_true", help="Trace both directions")
    parser.add_argument("-nonblock", action="store_true", help="Drop bytes instead of blocking on a slow client")
    return parser


def parse_args(argv=None) -> DaemonConfig:
    """Parse command-line arguments and return a validated DaemonConfig."""
    args = build_parser().parse_args(argv)
    _validate(args)
    return DaemonConfig.from_args(args)


def _validate(args):
    """Validate parsed arguments; raise ValueError on invalid values."""
    if not (args.serial and args.serial.strip()):
        raise ValueError("Serial device (-serial) must be non-empty")
    if not (1 <= args.port <= 65535):
        raise ValueError("TCP port (-port) must be between 1 and 65535")
    if args.aux is not None:
        if not (1 <= args.aux <= 65535):
            raise ValueError("Aux port (-aux) must be between 1 and 65535")
        if args.aux == args.port:
            raise ValueError("Aux port (-aux) must differ from the data port (-port)")
    if args.baud not in SUPPORTED_BAUDRATES:
        raise ValueError(f"Unknown baud rate (-baud): {args.baud}")


def configure_logging(config: DaemonConfig) -> None:
    """Install the log format and enable the per-direction tracers."""
    logging.basicConfig(level=logging.INFO, format=LOG_FORMAT, datefmt=LOG_DATEFMT)
    logging.getLogger("serialdaemon.trace.in").setLevel(
        logging.DEBUG if config.indebug else logging.INFO
    )
    logging.getLogger("serialdaemon.trace.out").setLevel(
        logging.DEBUG if config.outdebug else logging.INFO
    )
    if config.indebug or config.outdebug:
        logging.getLogger("serialdaemon").setLevel(logging.DEBUG)
        logging.getLogger("serialdaemon").debug("Debug mode on")
