"""Logging setup driven by ``LoggingConfig`` (text or JSON lines)."""
from __future__ import annotations

import json
import logging
from datetime import datetime, timezone

from core.config.schemas.observability import LoggingConfig

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
}

TEXT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class JSONFormatter(logging.Formatter):
    """One JSON object per record, suitable for log aggregation."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(
                record.created, tz=timezone.utc
            ).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)


def configure_logging(cfg: LoggingConfig | None = None) -> logging.Logger:
    """Install a single stream handler on the ``stagehand`` logger tree."""
    cfg = cfg or LoggingConfig()
    root = logging.getLogger("stagehand")
    root.setLevel(_LEVELS[cfg.level])
    for handler in list(root.handlers):
        if getattr(handler, "_stagehand", False):
            root.removeHandler(handler)
    handler = logging.StreamHandler()
    handler._stagehand = True  # type: ignore[attr-defined]
    if cfg.format == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(TEXT_FORMAT))
    root.addHandler(handler)
    return root


__all__ = ["JSONFormatter", "configure_logging"]
