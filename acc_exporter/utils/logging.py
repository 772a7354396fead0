"""Logging configuration for the exporter."""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from threading import Lock
from typing import Any, Final

from ..exceptions import ConfigurationError
from .config import get_settings

# Define log format with structured context placeholders.
LOG_FORMAT: Final[str] = (
    "%(asctime)s | %(levelname)s | %(name)s | "
    "component=%(component)s | client=%(client)s | status=%(status)s | "
    "duration_ms=%(duration_ms)s | %(message)s"
)

ERROR_LOG_FORMAT: Final[str] = "%(asctime)s: %(message)s"
ERROR_LOGGER_NAME: Final[str] = "acc_exporter.errors"

DEFAULT_CONTEXT: Final[dict[str, str]] = {
    "component": "-",
    "client": "-",
    "status": "-",
    "duration_ms": "-",
}

_LOG_CONFIGURED = False
_CONFIG_LOCK: Final = Lock()


class ContextualFormatter(logging.Formatter):
    """Formatter that injects default structured context fields when absent."""

    def __init__(self, fmt: str, defaults: dict[str, str] | None = None) -> None:
        super().__init__(fmt)
        self._defaults = defaults or {}

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        for key, value in self._defaults.items():
            if not hasattr(record, key):
                setattr(record, key, value)
        return super().format(record)


def _settings_log_level() -> str:
    try:
        return get_settings().log_level
    except ConfigurationError:
        # Reported by the entry point once it loads settings explicitly.
        return "INFO"


def configure_logging(level: str | None = None, *, force: bool = False) -> None:
    """Configure the root logger once, or again when ``force`` is set.

    Args:
        level: Log level name; defaults to the level from global settings.
        force: Re-apply configuration even if logging is already configured.
    """

    global _LOG_CONFIGURED
    with _CONFIG_LOCK:
        if _LOG_CONFIGURED and not force:
            return

        level_name = level or _settings_log_level()
        resolved_level = getattr(logging, level_name.upper(), logging.INFO)

        root_logger = logging.getLogger()
        root_logger.setLevel(resolved_level)

        formatter = ContextualFormatter(LOG_FORMAT, DEFAULT_CONTEXT)

        if not root_logger.handlers:
            handler = logging.StreamHandler(sys.stdout)
            handler.setLevel(resolved_level)
            handler.setFormatter(formatter)
            root_logger.addHandler(handler)
        else:
            for handler in root_logger.handlers:
                handler.setLevel(resolved_level)
                handler.setFormatter(formatter)

        _LOG_CONFIGURED = True


class StructuredLoggerAdapter(logging.LoggerAdapter):
    """Logger adapter that lets per-call extras override defaults."""

    def process(self, msg: str, kwargs: dict[str, Any]) -> tuple[str, dict[str, Any]]:  # type: ignore[override]
        base_extra = self.extra or {}
        extra = dict(base_extra)
        provided_extra = kwargs.get("extra") or {}
        extra.update(provided_extra)
        kwargs["extra"] = extra
        return msg, kwargs


def setup_logger(
    name: str,
    *,
    level: str | None = None,
    context: dict[str, Any] | None = None,
) -> logging.LoggerAdapter:
    """Return a logger configured with the global logging defaults.

    Args:
        name: Logger name to retrieve.
        level: Optional log level override (primarily for tests).
        context: Optional default structured context to include with every entry.

    Returns:
        LoggerAdapter injecting structured defaults for consistent formatting.
    """

    configure_logging()
    logger = logging.getLogger(name)

    if level is not None:
        resolved_value = getattr(logging, level.upper(), logging.INFO)
        logger.setLevel(resolved_value)
    else:
        logger.setLevel(logging.NOTSET)

    adapter_context: dict[str, Any] = dict(DEFAULT_CONTEXT)
    if context:
        for key, value in context.items():
            adapter_context[key] = value

    return StructuredLoggerAdapter(logger, adapter_context)


def setup_error_log(path: str | Path | None, *, name: str = ERROR_LOGGER_NAME) -> logging.Logger:
    """Return the append-only error log writing ``<timestamp>: <message>`` lines.

    The returned logger does not propagate; callers log to their structured
    logger separately. When ``path`` is ``None`` or cannot be opened the logger
    discards records.
    """

    error_logger = logging.getLogger(name)
    error_logger.propagate = False
    error_logger.setLevel(logging.INFO)

    for existing in list(error_logger.handlers):
        error_logger.removeHandler(existing)
        existing.close()

    if path is None:
        error_logger.addHandler(logging.NullHandler())
        return error_logger

    try:
        handler: logging.Handler = logging.FileHandler(path, mode="a", encoding="utf-8")
    except OSError as exc:
        logging.getLogger(__name__).warning(
            "Error log %s is not writable, error details go to the process log only: %s",
            path,
            exc,
        )
        handler = logging.NullHandler()
    else:
        handler.setFormatter(logging.Formatter(ERROR_LOG_FORMAT))

    error_logger.addHandler(handler)
    return error_logger


def log_error(
    logger: logging.Logger | logging.LoggerAdapter,
    error_log: logging.Logger | None,
    message: str,
    **extra_context: Any,
) -> None:
    """Log ``message`` as an error to the structured logger and the durable error log."""

    logger.error(message, extra={"status": "error", **extra_context})
    if error_log is not None:
        error_log.error(message)
