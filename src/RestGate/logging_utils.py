"""Structured logging helpers shared across RestGate components."""

from __future__ import annotations

import json
import logging
import os
import re
import sys
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Dict, Optional

__all__ = ["JSONFormatter", "mask_sensitive_data", "setup_logging"]

_MASK = "***masked***"
_SENSITIVE_KEYS = {"authorization", "token", "api_key", "apikey", "secret", "password"}
_TOKEN_SCHEMES = ("bot ", "bearer ")
_TOKEN_PATTERN = re.compile(r"^[A-Za-z0-9+/=_.-]{48,}$")


def mask_sensitive_data(payload: Dict[str, object]) -> Dict[str, object]:
    """Return a copy of ``payload`` with credentials masked.

    Keys such as ``authorization`` or ``token`` are masked outright; string
    values that look like ``Bot <token>`` / ``Bearer <token>`` or a bare
    token are masked wherever they appear. Nested dicts and lists are walked.
    """

    def _mask_value(value: object, key_hint: Optional[str] = None) -> object:
        if isinstance(value, dict):
            return {
                sub_key: _mask_value(sub_value, str(sub_key).lower())
                for sub_key, sub_value in value.items()
            }
        if isinstance(value, (list, tuple)):
            return type(value)(_mask_value(item, key_hint) for item in value)
        if isinstance(value, str):
            if key_hint in _SENSITIVE_KEYS:
                return _MASK
            lowered = value.lower()
            if lowered.startswith(_TOKEN_SCHEMES):
                return _MASK
            if _TOKEN_PATTERN.fullmatch(value):
                return _MASK
        return value

    masked: Dict[str, object] = {}
    for key, value in payload.items():
        lower = key.lower()
        if lower in _SENSITIVE_KEYS:
            masked[key] = _MASK
        else:
            masked[key] = _mask_value(value, lower)
    return masked


class JSONFormatter(logging.Formatter):
    """Formatter emitting masked JSON log entries."""

    def format(self, record: logging.LogRecord) -> str:
        """Render ``record`` as a JSON string with RestGate-specific fields."""

        now = datetime.now(timezone.utc)
        payload = {
            "timestamp": now.isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "bucket_key": getattr(record, "bucket_key", None),
            "route": getattr(record, "route", None),
        }
        if hasattr(record, "extra_fields") and isinstance(record.extra_fields, dict):
            payload.update(record.extra_fields)
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(mask_sensitive_data(payload), default=str)


def setup_logging(
    *,
    level: Optional[str] = None,
    log_dir: Optional[Path] = None,
    emit_json_logs: Optional[bool] = None,
    max_log_size_mb: int = 50,
    propagate: bool = False,
) -> logging.Logger:
    """Configure the ``RestGate`` logger with a console handler and optional JSONL file.

    The JSONL file is written only when ``emit_json_logs`` is true; its
    directory comes from ``log_dir`` or the ``RESTGATE_LOG_DIR`` environment
    variable. Handlers installed by a previous call are replaced.

    ``level`` and ``emit_json_logs`` default to ``get_settings().logging``
    (``RESTGATE_LOGGING__LEVEL``, ``RESTGATE_LOGGING__EMIT_JSON_LOGS``).
    """
    level_no = getattr(logging, level.upper(), logging.INFO) if level else None
    if level_no is None or emit_json_logs is None:
        from RestGate.settings import get_settings

        configured = get_settings().logging
        if level_no is None:
            level_no = configured.level_int()
        if emit_json_logs is None:
            emit_json_logs = configured.emit_json_logs

    logger = logging.getLogger("RestGate")
    logger.setLevel(level_no)

    for handler in list(logger.handlers):
        if getattr(handler, "_restgate_managed", False):
            logger.removeHandler(handler)
            if isinstance(handler, logging.StreamHandler):
                stream = getattr(handler, "stream", None)
                if stream in (sys.stdout, sys.stderr):
                    continue
            handler.close()

    console_formatter = logging.Formatter("%(levelname)s %(name)s: %(message)s")
    stream_handler = logging.StreamHandler(sys.stderr)
    stream_handler.setFormatter(console_formatter)
    stream_handler._restgate_managed = True  # type: ignore[attr-defined]
    logger.addHandler(stream_handler)

    if emit_json_logs:
        resolved_dir = log_dir
        if resolved_dir is None:
            env_value = os.environ.get("RESTGATE_LOG_DIR", "").strip()
            resolved_dir = Path(env_value) if env_value else Path.cwd() / "logs"
        resolved_dir.mkdir(parents=True, exist_ok=True)
        today = datetime.now(timezone.utc).strftime("%Y%m%d")
        file_handler = RotatingFileHandler(
            resolved_dir / f"restgate-{today}.jsonl",
            maxBytes=int(max_log_size_mb * 1024 * 1024),
            backupCount=5,
        )
        file_handler.setFormatter(JSONFormatter())
        file_handler._restgate_managed = True  # type: ignore[attr-defined]
        logger.addHandler(file_handler)

    logger.propagate = propagate
    return logger
