"""Logging setup shared by the relay server and the consumer client."""
from __future__ import annotations

import logging

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str | int = "INFO") -> None:
    """Send every record to stderr with a timestamped format."""

    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    logging.basicConfig(level=level, format=LOG_FORMAT)
    logging.getLogger().setLevel(level)

    # aioice and aiortc are chatty at INFO during candidate gathering.
    for name in ("aioice", "aiortc"):
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
