"""Command-line interface to start the event registration API.

Usage
-----
    eventreg-server --events-file events.json --port 3000
"""

from __future__ import annotations

import argparse
import os
from pathlib import Path
from typing import List, Optional

import uvicorn

from ..config.models import EnvSettings
from ..observability import setup_logging
from .http import create_app


def build_parser() -> argparse.ArgumentParser:
    """Return the argument parser for ``eventreg-server``."""
    parser = argparse.ArgumentParser(description="Event registration API server")
    parser.add_argument(
        "--events-file",
        dest="events_file",
        help="JSON seed file for events (overrides EVENTREG_EVENTS_FILE)",
    )
    parser.add_argument(
        "--log-level",
        dest="log_level",
        choices=[
            "CRITICAL",
            "ERROR",
            "WARNING",
            "INFO",
            "DEBUG",
        ],
        help="Logging level (overrides environment)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (once sets DEBUG)",
    )
    parser.add_argument(
        "--host", default="127.0.0.1", help="HTTP bind host (default 127.0.0.1)"
    )
    parser.add_argument("--port", type=int, default=3000, help="HTTP port")
    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """CLI entrypoint for running the HTTP server."""
    args = build_parser().parse_args(argv)

    # Determine effective log level
    env_level = os.environ.get("EVENTREG_LOG_LEVEL", "INFO").upper()
    effective_level = args.log_level or ("DEBUG" if args.verbose > 0 else env_level)
    # Apply early so subsequent imports use configured level
    setup_logging(effective_level)

    overrides = {"log_level": effective_level}
    if args.events_file:
        overrides["events_file"] = Path(args.events_file)
    settings = EnvSettings(**overrides)

    app = create_app(settings)
    uvicorn.run(
        app,
        host=args.host,
        port=args.port,
        log_level=effective_level.lower(),
    )


if __name__ == "__main__":
    main()
