"""Logging configuration for the kubeplugins command line."""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Mapping, Optional

__all__ = ["JsonFormatter", "ROOT_LOGGER_NAME", "setup_logging"]


ROOT_LOGGER_NAME = "kubeplugins"

_DEFAULT_LEVEL = "warning"
_DEFAULT_OUTPUT = "stderr"
_DEFAULT_FORMAT = "text"
_TEXT_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

# Structured attributes forwarded from ``extra=`` into JSON payloads.
_STRUCTURED_FIELDS = ("event", "category", "status_code", "context", "plugin")


class JsonFormatter(logging.Formatter):
    """Render log records as single-line JSON objects."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
        }
        for name in _STRUCTURED_FIELDS:
            if hasattr(record, name):
                payload[name] = getattr(record, name)
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str, sort_keys=True)


def _resolve_level(raw: Any) -> int:
    if isinstance(raw, int):
        return raw
    level = logging.getLevelName(str(raw).upper())
    if not isinstance(level, int):
        raise ValueError(f"Unknown logging level '{raw}'")
    return level


def _build_handler(output: str) -> logging.Handler:
    if output == "stdout":
        return logging.StreamHandler(sys.stdout)
    if output == "stderr":
        return logging.StreamHandler(sys.stderr)
    path = Path(output).expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)
    return logging.FileHandler(path, encoding="utf-8")


def setup_logging(config: Optional[Mapping[str, Any]] = None) -> logging.Logger:
    """Configure the ``kubeplugins`` logger from the ``logging`` table of ``config``.

    Recognised keys are ``level``, ``output`` (``stdout``, ``stderr`` or a
    file path) and ``format`` (``json`` or ``text``). Calling the function
    again replaces the handlers installed by a previous call.
    """

    logging_cfg = dict((config or {}).get("logging", {}))
    level = _resolve_level(logging_cfg.get("level", _DEFAULT_LEVEL))
    output = str(logging_cfg.get("output", _DEFAULT_OUTPUT))
    fmt = str(logging_cfg.get("format", _DEFAULT_FORMAT)).lower()

    handler = _build_handler(output)
    if fmt == "json":
        handler.setFormatter(JsonFormatter())
    elif fmt == "text":
        handler.setFormatter(logging.Formatter(_TEXT_FORMAT))
    else:
        raise ValueError(f"Unknown logging format '{fmt}'")

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    for existing in list(logger.handlers):
        logger.removeHandler(existing)
        existing.close()
    logger.addHandler(handler)
    logger.setLevel(level)
    logger.propagate = False
    return logger
