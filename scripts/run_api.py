#!/usr/bin/env python3
"""Serve the ntpcheck HTTP API.

Usage examples:
  - python scripts/run_api.py
  - python scripts/run_api.py --host 127.0.0.1 --port 8080 --log-level DEBUG
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path


# Ensure src is on sys.path when running from a checkout
ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

import uvicorn  # noqa: E402

from ntpcheck.config.settings import settings  # noqa: E402
from ntpcheck.utils.logging_config import LOG_LEVELS, setup_logging  # noqa: E402


def main() -> None:
    parser = argparse.ArgumentParser(description="Run the ntpcheck HTTP API")
    parser.add_argument("--host", default=settings.API_HOST, help="Bind address (default: %(default)s)")
    parser.add_argument("--port", type=int, default=settings.API_PORT, help="Bind port (default: %(default)s)")
    parser.add_argument(
        "--log-level", type=str.upper, choices=LOG_LEVELS, default=settings.LOG_LEVEL, help="Log level (default: %(default)s)"
    )
    args = parser.parse_args()

    setup_logging(level=args.log_level, component="api")
    print(f"Serving ntpcheck API on {args.host}:{args.port} (default server {settings.NTP_SERVER})")
    uvicorn.run("ntpcheck.api.rest_api:app", host=args.host, port=args.port, log_level=args.log_level.lower())


if __name__ == "__main__":
    main()
