"""Configuration loader and settings helpers for the exporter."""

import logging
import os
import re
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from pydantic import Field, field_validator
from pydantic import (
    ValidationError as PydanticValidationError,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..exceptions import ConfigurationError

logger = logging.getLogger(__name__)

ENV_PREFIX = "ACC_EXPORTER_"

DEFAULT_DATABASE_PATH = Path(
    "/Library/Application Support/Apple/AssetCache/Metrics/Metrics.db"
)
DEFAULT_ERROR_LOG_PATH = Path("/var/log/acc-exporter.err.log")

_IDENTIFIER_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def load_yaml_config(config_path: str | Path) -> dict[str, Any]:
    """
    Load configuration from YAML file.

    Args:
        config_path: Path to YAML configuration file

    Returns:
        Configuration dictionary

    Raises:
        ConfigurationError: If file not found or invalid YAML
    """
    try:
        with open(config_path) as f:
            config = yaml.safe_load(f)
    except FileNotFoundError:
        raise ConfigurationError(f"Configuration file not found: {config_path}")
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {config_path}: {e}")

    if config is None:
        return {}
    if not isinstance(config, dict):
        raise ConfigurationError(
            f"Configuration file {config_path} must contain a mapping at the top level"
        )
    return config


def apply_env_overrides(config: dict[str, Any], prefix: str = ENV_PREFIX) -> dict[str, Any]:
    """
    Override configuration values with environment variables.

    Example: ACC_EXPORTER_PORT=9300 overrides config['port'].

    Args:
        config: Base configuration dictionary
        prefix: Environment variable prefix

    Returns:
        Configuration with environment overrides applied
    """
    for key, value in os.environ.items():
        if not key.startswith(prefix):
            continue
        config[key[len(prefix) :].lower()] = value

    return config


class ExporterSettings(BaseSettings):
    """Exporter settings sourced from environment variables and optional YAML."""

    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        env_file=(".env", ".env.local"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    database_path: Path = DEFAULT_DATABASE_PATH
    table_name: str = "ZMETRIC"
    order_column: str = "ZCREATIONDATE"
    read_only: bool = False
    metric_prefix: str = "acc_"

    host: str = "0.0.0.0"
    port: int = Field(default=9200, ge=0, le=65535)
    metrics_path: str = "/metrics"

    rate_limit_window_seconds: float = Field(default=1.0, ge=0)
    rate_limit_max_clients: int | None = Field(default=None, ge=1)

    restart_delay_seconds: float = Field(default=5.0, ge=0)
    worker_threads: int = Field(default_factory=lambda: os.cpu_count() or 1, ge=1)

    error_log_path: Path | None = DEFAULT_ERROR_LOG_PATH
    log_level: str = "INFO"

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        """Ensure log level values are uppercase for logging config."""

        return value.upper()

    @field_validator("table_name", "order_column")
    @classmethod
    def _validate_identifier(cls, value: str) -> str:
        if not _IDENTIFIER_PATTERN.match(value):
            raise ValueError(f"'{value}' is not a valid SQL identifier")
        return value

    @field_validator("metrics_path")
    @classmethod
    def _validate_metrics_path(cls, value: str) -> str:
        if not value.startswith("/"):
            raise ValueError("metrics_path must start with '/'")
        return value

    @field_validator("database_path", "error_log_path", mode="before")
    @classmethod
    def _expand_paths(cls, value: Any) -> Any:
        """Allow string paths and expand user markers."""

        if isinstance(value, str):
            if not value.strip():
                return None
            return Path(value).expanduser()
        return value


def load_settings(config_path: str | Path | None = None, **overrides: Any) -> ExporterSettings:
    """
    Build settings from an optional YAML file, the environment and explicit overrides.

    Precedence, lowest to highest: defaults, YAML file, ``ACC_EXPORTER_*``
    environment variables, keyword overrides (used by CLI options).

    Raises:
        ConfigurationError: If the file cannot be read or validation fails
    """
    config: dict[str, Any] = {}
    if config_path is not None:
        config = load_yaml_config(config_path)
        logger.debug("Loaded configuration file %s", config_path)

    config = apply_env_overrides(config)
    config.update({key: value for key, value in overrides.items() if value is not None})

    try:
        return ExporterSettings(**config)
    except PydanticValidationError as e:
        raise ConfigurationError(f"Configuration validation failed: {e}") from e


@lru_cache(maxsize=1)
def _get_settings_cached() -> ExporterSettings:
    return load_settings()


def get_settings(*, reload: bool = False) -> ExporterSettings:
    """Return cached settings, optionally forcing a reload."""

    if reload:
        _get_settings_cached.cache_clear()
    return _get_settings_cached()
