"""
=============================================================================
MEMSERVE CLI ENTRY POINT
=============================================================================

    python -m memserve
    memserve --web-root ./public --port 3000
    memserve --no-memory --debug
    memserve --access-log /var/log/memserve/access.log

Settings come from the environment first (see memserve.config); any
option given here overrides the matching variable.

Exit status is 1 when the web root cannot be loaded, a port cannot be
bound or the configuration is invalid.

=============================================================================
"""

import argparse
import dataclasses
import logging
import sys
from typing import List, Optional

from . import __version__
from .app import configure_logging, run
from .config import LOG_LEVELS, ServerConfig
from .content import ContentLoadError


logger = logging.getLogger("memserve")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="memserve",
        description="Serve a static site from memory with caching headers, gzip and Prometheus metrics",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  memserve                                  # Serve $WEBROOT (default /app/public)
  memserve --web-root ./public --port 3000  # Local preview
  memserve --no-memory                      # Read from disk on every request
        """
    )

    parser.add_argument(
        "--host", "-H",
        help="Address to bind (env HOST, default: 0.0.0.0)"
    )
    parser.add_argument(
        "--port", "-p",
        type=int,
        help="Content port (env PORT, default: 8080)"
    )
    parser.add_argument(
        "--metrics-port",
        type=int,
        help="Metrics/health port (env METRICS_PORT, default: 9090)"
    )
    parser.add_argument(
        "--web-root", "-r",
        help="Directory to serve (env WEBROOT, default: /app/public)"
    )
    parser.add_argument(
        "--no-memory",
        action="store_true",
        help="Serve from disk instead of preloading into memory (env USE_MEMORY=false)"
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Debug logging (env DEBUG)"
    )
    parser.add_argument(
        "--log-level", "-l",
        type=str.upper,
        choices=LOG_LEVELS,
        help="Logging level (env LOG_LEVEL, default: INFO)"
    )
    parser.add_argument(
        "--access-log",
        metavar="PATH",
        help="Also append access lines to this file (env LOG_FILE_PATH)"
    )
    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"memserve {__version__}"
    )
    return parser


def config_from_args(args: argparse.Namespace, base: Optional[ServerConfig] = None) -> ServerConfig:
    """Overlay the options that were given onto ``base`` (env by default)."""
    config = base if base is not None else ServerConfig.from_env()

    overrides = {
        "host": args.host,
        "port": args.port,
        "metrics_port": args.metrics_port,
        "web_root": args.web_root,
        "log_level": args.log_level,
        "access_log_path": args.access_log,
    }
    changes = {name: value for name, value in overrides.items() if value is not None}
    if args.no_memory:
        changes["use_memory"] = False
    if args.debug:
        changes["debug"] = True

    return dataclasses.replace(config, **changes)


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    config = config_from_args(args)

    try:
        config.validate()
    except ValueError as e:
        print(f"memserve: invalid configuration: {e}", file=sys.stderr)
        return 1

    try:
        configure_logging(config)
    except OSError as e:
        print(f"memserve: cannot open access log: {e}", file=sys.stderr)
        return 1

    logger.info(f"memserve {__version__} starting (web root {config.web_root})")

    try:
        run(config)
    except ContentLoadError as e:
        logger.critical(f"Failed to load content: {e}")
        return 1
    except OSError as e:
        logger.critical(f"Failed to start server: {e}")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
