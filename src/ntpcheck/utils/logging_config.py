"""Structured logging for ntpcheck.

Every event is one JSON line. Results go to stdout, so log lines go to
stderr unless a file is given. Context bound with
``structlog.contextvars`` (the fan-out binds ``target`` and
``target_port`` per worker) is merged into each line, which keeps
interleaved lines from concurrent queries attributable.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Optional

import structlog

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _handler(log_path: Optional[str | Path]) -> logging.Handler:
    if not log_path:
        return logging.StreamHandler(sys.stderr)
    path = Path(log_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    return logging.FileHandler(path, encoding="utf-8")


def setup_logging(
    level: str = "INFO",
    component: Optional[str] = None,
    log_path: Optional[str | Path] = None,
) -> structlog.BoundLogger:
    """Configure structlog and return a logger bound to ``component``.

    Raises ValueError for a level outside LOG_LEVELS.
    """
    level = level.upper()
    if level not in LOG_LEVELS:
        raise ValueError(f"Unknown log level: {level}")

    logging.basicConfig(level=level, format="%(message)s", handlers=[_handler(log_path)], force=True)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="ISO"),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logger = structlog.get_logger("ntpcheck")
    if component:
        logger = logger.bind(component=component)
    return logger
