"""Structured logging helpers for the expense API."""

from __future__ import annotations

import json
import logging
import os
from datetime import UTC, datetime
from typing import Final

CONSOLE_FORMAT: Final[str] = "[%(levelname)s] %(name)s: %(message)s"
DEFAULT_LEVEL: Final[str] = "INFO"
JSON_ENV_FLAG: Final[str] = "EXPENSE_API_JSON_LOGS"
LEVEL_ENV_FLAG: Final[str] = "EXPENSE_API_LOG_LEVEL"
ROOT_LOGGER: Final[str] = "expense_api"


class JsonAccessFormatter(logging.Formatter):
    """Format log records as single-line JSON payloads."""

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created, tz=UTC).isoformat()
        payload = {
            "timestamp": timestamp,
            "level": record.levelname,
            "source": record.name,
            "message": record.getMessage(),
            "method": getattr(record, "method", None),
            "path": getattr(record, "path", None),
            "status_code": _coerce_int(getattr(record, "status_code", None)),
            "process_time_ms": _coerce_number(getattr(record, "process_time_ms", None)),
            "user_id": _coerce_int(getattr(record, "user_id", None)),
        }
        return json.dumps(payload, ensure_ascii=False)


def _coerce_number(value: object) -> float | None:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _coerce_int(value: object) -> int | None:
    number = _coerce_number(value)
    return None if number is None else int(number)


def _resolve_level(level: str | int | None) -> int:
    """Pick the log level from the environment, then the caller, then the default."""

    env_level = os.environ.get(LEVEL_ENV_FLAG)
    if env_level:
        candidate = env_level.strip().upper()
    elif isinstance(level, str):
        candidate = level.strip().upper()
    elif isinstance(level, int):
        return int(level)
    else:
        candidate = DEFAULT_LEVEL
    resolved = logging.getLevelName(candidate)
    return int(resolved) if isinstance(resolved, int) else logging.INFO


def _json_logging_enabled(explicit: bool) -> bool:
    if explicit:
        return True
    value = os.environ.get(JSON_ENV_FLAG)
    if value is None:
        return False
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _ensure_console_handler(logger: logging.Logger, level: int, json_format: bool) -> None:
    """Attach one console handler per logger and keep its formatter current."""

    formatter = JsonAccessFormatter() if json_format else logging.Formatter(CONSOLE_FORMAT)
    for handler in logger.handlers:
        if getattr(handler, "_expense_api_console", False):
            handler.setLevel(level)
            handler.setFormatter(formatter)
            return
    stream_handler = logging.StreamHandler()
    stream_handler.setLevel(level)
    stream_handler.setFormatter(formatter)
    stream_handler._expense_api_console = True  # type: ignore[attr-defined]
    logger.addHandler(stream_handler)


def setup_logger(
    name: str = ROOT_LOGGER,
    json_format: bool = False,
    level: str | int | None = None,
) -> logging.Logger:
    """Configure and return a logger for the expense API modules.

    Child loggers (``expense_api.server`` and friends) only get their level
    set; the console handler lives on the package root so each record is
    printed once.
    """

    resolved_level = _resolve_level(level)
    logger = logging.getLogger(name)
    logger.setLevel(resolved_level)
    # Records still propagate so capture handlers (``pytest caplog``) see them.
    logger.propagate = True
    if name == ROOT_LOGGER:
        _ensure_console_handler(logger, resolved_level, _json_logging_enabled(json_format))
    return logger


def configure_logging(json_logs: bool = False, level: str | int | None = None) -> logging.Logger:
    """Reconfigure every existing ``expense_api`` logger for a server run."""

    if json_logs:
        os.environ[JSON_ENV_FLAG] = "1"
    root = setup_logger(ROOT_LOGGER, json_format=json_logs, level=level)
    for name, logger in logging.Logger.manager.loggerDict.items():
        if isinstance(logger, logging.Logger) and name.startswith(f"{ROOT_LOGGER}."):
            setup_logger(name, json_format=json_logs, level=level)
    return root


__all__ = [
    "CONSOLE_FORMAT",
    "JsonAccessFormatter",
    "configure_logging",
    "setup_logger",
]
