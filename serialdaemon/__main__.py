"""Entry point: parse config and run the serial daemon until a fatal error."""

import sys

from serialdaemon.config import parse_args
from serialdaemon.errors import FatalError
from serialdaemon.session import run_daemon


def main(argv=None):
    try:
        config = parse_args(argv)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    try:
        run_daemon(config)
    except FatalError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
