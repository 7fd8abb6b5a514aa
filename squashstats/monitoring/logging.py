"""Structured logging with per-venue context.

Features:
- console handler, optional file handler
- JSON logs optional (easy ingestion)
- context injection (venue_id/stage) through ``extra=`` without a framework
"""

from __future__ import annotations

import json
import logging
import sys
import time
from pathlib import Path
from typing import Any, Optional

ROOT_LOGGER_NAME = "squashstats"
CONTEXT_FIELDS = ("venue_id", "stage", "command")

# ---------------------------------------------------------------------
# Formatters
# ---------------------------------------------------------------------


class JsonFormatter(logging.Formatter):
    """Format log records as JSON."""

    def format(self, record: logging.LogRecord) -> str:
        base: dict[str, Any] = {
            "ts": time.time(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        for k in CONTEXT_FIELDS:
            if hasattr(record, k):
                base[k] = getattr(record, k)

        if record.exc_info:
            base["exc_info"] = self.formatException(record.exc_info)

        payload = getattr(record, "payload", None)
        if isinstance(payload, dict):
            base["payload"] = payload

        return json.dumps(base, ensure_ascii=False, default=str)


class TextFormatter(logging.Formatter):
    """Format log records as human-readable text."""

    def format(self, record: logging.LogRecord) -> str:
        parts = [
            self.formatTime(record, "%Y-%m-%d %H:%M:%S"),
            record.levelname,
            record.name,
        ]

        ctx = []
        for k in CONTEXT_FIELDS:
            value = getattr(record, k, None)
            if value is not None:
                ctx.append(f"{k}={value}")
        if ctx:
            parts.append("[" + " ".join(ctx) + "]")

        parts.append(record.getMessage())

        payload = getattr(record, "payload", None)
        if isinstance(payload, dict) and payload:
            parts.append(json.dumps(payload, ensure_ascii=False, default=str))

        s = " ".join(parts)
        if record.exc_info:
            s += "\n" + self.formatException(record.exc_info)
        return s


# ---------------------------------------------------------------------
# Setup
# ---------------------------------------------------------------------


def setup_logging(
    level: str = "INFO",
    *,
    json_logs: bool = False,
    log_file: Optional[Path] = None,
) -> logging.Logger:
    """Configure the package logger. Safe to call more than once."""
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    logger.propagate = False

    # Clear old handlers if re-configuring
    for h in list(logger.handlers):
        logger.removeHandler(h)
        h.close()

    fmt: logging.Formatter = JsonFormatter() if json_logs else TextFormatter()

    ch = logging.StreamHandler(sys.stdout)
    ch.setLevel(logger.level)
    ch.setFormatter(fmt)
    logger.addHandler(ch)

    if log_file is not None:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(log_file, encoding="utf-8")
        fh.setLevel(logger.level)
        fh.setFormatter(fmt)
        logger.addHandler(fh)

    return logger


def venue_context(venue_id: Any, stage: Optional[str] = None, **payload: Any) -> dict:
    """Build an ``extra=`` mapping carrying venue context and a payload."""
    extra: dict[str, Any] = {"venue_id": venue_id}
    if stage is not None:
        extra["stage"] = stage
    if payload:
        extra["payload"] = payload
    return extra
