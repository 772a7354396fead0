"""Utilities package initialization."""
from .config import (
    ExporterSettings,
    apply_env_overrides,
    get_settings,
    load_settings,
    load_yaml_config,
)
from .logging import configure_logging, log_error, setup_error_log, setup_logger

__all__ = [
    "ExporterSettings",
    "apply_env_overrides",
    "configure_logging",
    "get_settings",
    "load_settings",
    "load_yaml_config",
    "log_error",
    "setup_error_log",
    "setup_logger",
]
