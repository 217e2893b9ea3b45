"""Command line entry point: resolve host/port and run the server with uvicorn."""
import argparse
import logging
import os
import sys
from typing import Mapping, Optional, Sequence

import uvicorn

from videolab.config import DEFAULT_PORT, HOST

logger = logging.getLogger("videolab.cli")

EXAMPLES = """\
examples:
  videolab                  # port 3000
  videolab 8080             # port 8080
  videolab --port=9000      # port 9000
  videolab -p 9000          # port 9000
  PORT=4000 videolab        # port 4000
"""


class InvalidPort(ValueError):
    pass


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="videolab",
        description="VideoLab - lightweight video player server",
        epilog=EXAMPLES,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("port", nargs="?", help=f"port number (default: {DEFAULT_PORT})")
    parser.add_argument("-p", "--port", dest="port_option", metavar="PORT", help="port number")
    parser.add_argument("--host", default=HOST, help=f"bind address (default: {HOST})")
    return parser


def _parse_port(value: str) -> int:
    value = value.strip()
    if not value.isdigit():
        raise InvalidPort(f"Port must be a number, got {value!r}")
    port = int(value)
    if not 1 <= port <= 65535:
        raise InvalidPort("Port must be between 1 and 65535")
    return port


def resolve_port(
    positional: Optional[str],
    option: Optional[str],
    environ: Mapping[str, str],
) -> int:
    """Positional argument, then -p/--port, then $PORT, then the default.

    A $PORT that is not a positive number is ignored; command line values
    must be valid.
    """
    for value in (positional, option):
        if value is not None:
            return _parse_port(value)
    env_port = environ.get("PORT", "").strip()
    if env_port.isdigit() and int(env_port) > 0:
        return _parse_port(env_port)
    return DEFAULT_PORT


def main(argv: Optional[Sequence[str]] = None) -> None:
    args = build_parser().parse_args(argv)
    try:
        port = resolve_port(args.port, args.port_option, os.environ)
    except InvalidPort as e:
        logger.error("Error: %s", e)
        sys.exit(1)

    from videolab.main import create_app

    logger.info("VideoLab listening on http://%s:%s", args.host, port)
    uvicorn.run(create_app(), host=args.host, port=port)


if __name__ == "__main__":
    main()
