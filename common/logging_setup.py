from __future__ import annotations

import logging
import os
import sys
import json
import time
from typing import Optional, TextIO


class JsonFormatter(logging.Formatter):
    """
    One JSON object per line:
      { "t": 169, "lvl": "INFO", "name": "aligndem.pipeline", "msg": "text", "extra": {...} }
    """

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        payload = {
            "t": int(record.created * 1000) if record.created else int(time.time() * 1000),
            "lvl": record.levelname,
            "name": record.name,
            "msg": record.getMessage(),
        }
        if hasattr(record, "extra") and isinstance(record.extra, dict):  # type: ignore[attr-defined]
            payload["extra"] = record.extra  # type: ignore[attr-defined]
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


def _resolve_level(level: Optional[str]) -> int:
    name = (level or os.environ.get("ALIGNDEM_LOG_LEVEL") or os.environ.get("LOG_LEVEL") or "INFO").upper()
    lvl = logging.getLevelName(name)
    return lvl if isinstance(lvl, int) else logging.INFO


def setup_logging(level: Optional[str] = None, stream: Optional[TextIO] = None, *, force: bool = False) -> None:
    """
    Configure the root logger with JSON formatting.

    Level precedence: explicit ``level``, env ALIGNDEM_LOG_LEVEL, env LOG_LEVEL, INFO.
    Output goes to stderr so stdout only carries the alignment result.
    A second call is a no-op unless ``force`` is set (the CLI forces once
    it has read its config).
    """
    root = logging.getLogger()
    if getattr(root, "_aligndem_configured", False) and not force:
        return

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(JsonFormatter())

    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(_resolve_level(level))
    root._aligndem_configured = True  # type: ignore[attr-defined]


def get_logger(name: str) -> logging.Logger:
    """Get a module logger; ensures root is configured."""
    setup_logging()
    return logging.getLogger(name)
