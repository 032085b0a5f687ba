"""
=============================================================================
DIRSERVER CLI ENTRY POINT
=============================================================================

    python -m dirserver                  # current directory, port 8000
    python -m dirserver 9000             # positional port
    python -m dirserver -p 9000 -d /srv  # flags
    python -m dirserver -b 127.0.0.1     # localhost only
    python -m dirserver -t ./templates   # custom listing/error pages

Flags override DIRSERVER_* environment variables, which override the
defaults in ServerConfig. Anything that stops the server from starting is
printed to stderr and the process exits with status 1 (argparse itself
exits with 2 for malformed arguments).

=============================================================================
"""

import argparse
import sys

from . import __version__
from .config import ServerConfig
from .rendering import TemplateRenderError
from .server import DirectoryServer


def port_number(value: str) -> int:
    """argparse type for a TCP port."""
    try:
        port = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid port: {value!r}")
    if not 0 <= port <= 65535:
        raise argparse.ArgumentTypeError(f"port out of range (0-65535): {port}")
    return port


def positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid number: {value!r}")
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be >= 1: {number}")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="dirserver",
        description="Serve a directory over HTTP with browsable listings",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  dirserver                         # Serve . on 0.0.0.0:8000
  dirserver 9000                    # Custom port
  dirserver -d /srv/files           # Custom directory
  dirserver -b 127.0.0.1 -p 9000    # Localhost only
  dirserver -t ./templates          # Custom listing.html / error.html
        """
    )

    parser.add_argument(
        "port",
        nargs="?",
        type=port_number,
        default=None,
        help="Port to listen on (default: 8000)"
    )

    parser.add_argument(
        "--port", "-p",
        dest="port_option",
        type=port_number,
        default=None,
        help="Port to listen on; wins over the positional form"
    )

    parser.add_argument(
        "--directory", "-d",
        default=None,
        help="Directory to serve (default: current directory)"
    )

    parser.add_argument(
        "--bind", "-b",
        default=None,
        metavar="ADDRESS",
        help="Address to bind to (default: 0.0.0.0)"
    )

    parser.add_argument(
        "--workers", "-w",
        type=positive_int,
        default=None,
        help="Worker threads at startup; up to twice as many under load"
    )

    parser.add_argument(
        "--templates", "-t",
        default=None,
        metavar="DIR",
        help="Directory with listing.html and error.html (default: bundled)"
    )

    parser.add_argument(
        "--log-level", "-l",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Logging level (default: INFO)"
    )

    parser.add_argument(
        "--log-format",
        choices=["text", "json"],
        default=None,
        help="Access log format (default: text)"
    )

    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"dirserver {__version__}"
    )

    return parser


def config_from_args(args: argparse.Namespace) -> ServerConfig:
    """
    Layer parsed arguments over the environment.

    Raises:
        ValueError: If a DIRSERVER_* variable is malformed.
    """
    port = args.port_option if args.port_option is not None else args.port

    overrides = {
        "host": args.bind,
        "port": port,
        "root_dir": args.directory,
        "template_dir": args.templates,
        "log_level": args.log_level,
        "log_format": args.log_format,
    }
    if args.workers is not None:
        overrides["min_workers"] = args.workers
        overrides["max_workers"] = args.workers * 2

    return ServerConfig.from_env(**overrides)


def main(argv=None):
    """Parse arguments, build the server and run it until interrupted."""
    args = build_parser().parse_args(argv)

    try:
        config = config_from_args(args)
        server = DirectoryServer(config)
        server.run()
    except (ValueError, TemplateRenderError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
