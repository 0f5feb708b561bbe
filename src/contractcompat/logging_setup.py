"""
Logging setup for contractcompat.

Every module logs through ``logging.getLogger(__name__)``; this module
only installs the output handler on the package logger.  JSON lines are
meant for Loki ingestion, text for a console.

Usage:
    from contractcompat.logging_setup import configure_logging

    configure_logging()                       # from config
    configure_logging(level="debug", fmt="text")
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import IO, Optional

from contractcompat.config import get_config

PACKAGE_LOGGER = "contractcompat"

_HANDLER_NAME = "contractcompat-stdout"


class JsonLineFormatter(logging.Formatter):
    """Render each record as a single JSON object."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry)


def configure_logging(
    level: Optional[str] = None,
    fmt: Optional[str] = None,
    stream: Optional[IO[str]] = None,
) -> logging.Logger:
    """Install (or replace) the stdout handler on the package logger.

    Args:
        level: ``debug`` / ``info`` / ``warning`` / ``error``; defaults to config.
        fmt: ``json`` or ``text``; defaults to config.
        stream: Output stream; defaults to stdout.

    Returns:
        The configured package logger.
    """
    config = get_config()
    level = (level or config.log_level).upper()
    fmt = fmt or config.log_format

    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(getattr(logging, level))

    for existing in list(logger.handlers):
        if existing.get_name() == _HANDLER_NAME:
            logger.removeHandler(existing)

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.set_name(_HANDLER_NAME)
    if fmt == "json":
        handler.setFormatter(JsonLineFormatter())
    else:
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
        )
    logger.addHandler(handler)
    return logger
