"""Structured logging helpers shared across snapshot changelog components."""

from __future__ import annotations

import json
import logging
import sys
import uuid
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Dict, Optional

__all__ = [
    "LOGGER_NAME",
    "JSONFormatter",
    "generate_run_id",
    "mask_sensitive_data",
    "setup_logging",
]

LOGGER_NAME = "SnapshotChangelog"

_SENSITIVE_KEYS = {
    "authorization",
    "api_key",
    "apikey",
    "llm_api_key",
    "token",
    "webhook_token",
    "webhook_url",
    "secret",
    "password",
}


def mask_sensitive_data(payload: Dict[str, object]) -> Dict[str, object]:
    """Remove secrets from structured payloads prior to logging.

    Examples:
        >>> mask_sensitive_data({"webhook_token": "secret", "status": "ok"})
        {'webhook_token': '***masked***', 'status': 'ok'}
    """
    masked: Dict[str, object] = {}
    for key, value in payload.items():
        if key.lower() in _SENSITIVE_KEYS and value is not None:
            masked[key] = "***masked***"
        elif isinstance(value, dict):
            masked[key] = mask_sensitive_data(value)
        else:
            masked[key] = value
    return masked


def generate_run_id() -> str:
    """Create a short identifier linking every log record of one pipeline run."""
    return uuid.uuid4().hex[:12]


class JSONFormatter(logging.Formatter):
    """Formatter emitting masked JSON log entries for pipeline runs."""

    def format(self, record: logging.LogRecord) -> str:
        """Render ``record`` as a JSON string with pipeline-specific fields."""

        now = datetime.now(timezone.utc)
        payload: Dict[str, object] = {
            "timestamp": now.isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "run_id": getattr(record, "run_id", None),
            "stage": getattr(record, "stage", None),
        }
        if hasattr(record, "extra_fields") and isinstance(record.extra_fields, dict):
            payload.update(record.extra_fields)
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(mask_sensitive_data(payload), default=str)


def setup_logging(
    *,
    level: str = "INFO",
    log_file: Optional[Path] = None,
    max_log_size_mb: int = 10,
    backup_count: int = 3,
    propagate: bool = False,
) -> logging.Logger:
    """Configure the package logger with a console handler and optional JSON sidecar."""

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    for handler in list(logger.handlers):
        if getattr(handler, "_snaplog_managed", False):
            logger.removeHandler(handler)
            if isinstance(handler, logging.StreamHandler) and not isinstance(
                handler, logging.FileHandler
            ):
                continue
            handler.close()

    console_formatter = logging.Formatter("%(levelname)s: %(message)s")
    stream_handler = logging.StreamHandler(sys.stdout)
    stream_handler.setFormatter(console_formatter)
    stream_handler._snaplog_managed = True  # type: ignore[attr-defined]
    logger.addHandler(stream_handler)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=int(max_log_size_mb * 1024 * 1024),
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setFormatter(JSONFormatter())
        file_handler._snaplog_managed = True  # type: ignore[attr-defined]
        logger.addHandler(file_handler)

    logger.propagate = propagate
    return logger
