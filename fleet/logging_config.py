"""Logging setup for the orchestrator process."""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone

from fleet.config import settings

_configured = False


class JSONFormatter(logging.Formatter):
    """Render log records as one JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry)


def setup_logging(level: str | None = None, fmt: str | None = None) -> None:
    """Configure the root logger once from settings."""
    global _configured
    if _configured:
        return

    handler = logging.StreamHandler(sys.stderr)
    if (fmt or settings.log_format).lower() == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(
            "%(asctime)s %(levelname)s [%(name)s] %(message)s"
        ))

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel((level or settings.log_level).upper())

    # Per-request lines from httpx are noise at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
    _configured = True
