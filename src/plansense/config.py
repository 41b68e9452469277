"""
Configuration system for PlanSense.

Implements 12-factor config principles:
- Environment variables as primary config source
- Optional JSON/YAML config file for local development
- Per-environment profiles: production starts from the strict parser
  limits, other environments from the defaults. Limits set explicitly
  always win.

Usage:
    from plansense.config import get_config

    config = get_config()
    plan = parse_plan(text, config.parser_config())

    # Comparison columns shown by default
    for metric in config.compare_metrics:
        ...
"""

from __future__ import annotations

import json
import logging
import os
from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from plansense.exceptions import ConfigurationError
from plansense.filtering import FilterSpec
from plansense.parser.config import DEFAULT_CONFIG, STRICT_CONFIG, ParserConfig
from plansense.plan_diff import DEFAULT_COMPARE_METRICS, CompareMetric

logger = logging.getLogger(__name__)

ENV_PREFIX = "PLANSENSE_"
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class Environment(str, Enum):
    """Environment profiles with different default parser limits."""

    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"

    @classmethod
    def from_string(cls, value: str) -> "Environment":
        """Parse environment from string, defaulting to development."""
        try:
            return cls(value.lower())
        except ValueError:
            return cls.DEVELOPMENT

    @property
    def parser_defaults(self) -> ParserConfig:
        """Parser limits used where the config leaves them unset."""
        if self is Environment.PRODUCTION:
            return STRICT_CONFIG
        return DEFAULT_CONFIG


class Config(BaseModel):
    """
    PlanSense configuration.

    Loaded from environment variables and optional config file.
    """

    model_config = ConfigDict(frozen=True)

    environment: Environment = Field(
        default=Environment.DEVELOPMENT,
        description="Current environment (development/staging/production)",
    )

    log_level: str = Field(
        default="WARNING",
        description="Root log level for the CLI",
    )

    # Parser limits; None means the environment profile's default
    max_file_size_mb: float | None = Field(default=None, gt=0)
    max_input_chars: int | None = Field(default=None, gt=0)
    max_nodes: int | None = Field(default=None, gt=0)

    # Comparison
    compare_metrics: tuple[CompareMetric, ...] = Field(
        default=DEFAULT_COMPARE_METRICS,
        description="Metrics shown per matched node pair",
    )

    # Default filter applied by `plansense parse`
    default_filter: FilterSpec = Field(default_factory=FilterSpec)

    @field_validator("log_level")
    @classmethod
    def _check_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"log_level must be one of {', '.join(LOG_LEVELS)}")
        return level

    def parser_config(self) -> ParserConfig:
        """
        Parser limits as a ParserConfig.

        Unset limits come from the environment profile: STRICT_CONFIG in
        production, DEFAULT_CONFIG elsewhere.
        """
        overrides = {
            name: value
            for name, value in (
                ("max_file_size_mb", self.max_file_size_mb),
                ("max_input_chars", self.max_input_chars),
                ("max_nodes", self.max_nodes),
            )
            if value is not None
        }
        return self.environment.parser_defaults.model_copy(update=overrides)


def _parse_env_int(value: str | None) -> int | None:
    """Parse integer from environment variable."""
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        logger.warning("Ignoring non-integer value %r", value)
        return None


def _parse_env_float(value: str | None) -> float | None:
    """Parse float from environment variable."""
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        logger.warning("Ignoring non-numeric value %r", value)
        return None


def _parse_env_list(value: str | None) -> list[str] | None:
    if value is None:
        return None
    return [item.strip() for item in value.split(",") if item.strip()]


def load_config_from_env() -> Config:
    """
    Load configuration from environment variables.

    Examples:
    - PLANSENSE_ENVIRONMENT=production
    - PLANSENSE_LOG_LEVEL=DEBUG
    - PLANSENSE_MAX_NODES=5000
    - PLANSENSE_COMPARE_METRICS=cost,actual_rows,starts
    """
    env = os.environ
    default = Config()

    config_kwargs: dict[str, Any] = {
        "environment": Environment.from_string(env.get(f"{ENV_PREFIX}ENVIRONMENT", "development")),
        "log_level": env.get(f"{ENV_PREFIX}LOG_LEVEL", default.log_level),
        "max_file_size_mb": _parse_env_float(env.get(f"{ENV_PREFIX}MAX_FILE_SIZE_MB")),
        "max_input_chars": _parse_env_int(env.get(f"{ENV_PREFIX}MAX_INPUT_CHARS")),
        "max_nodes": _parse_env_int(env.get(f"{ENV_PREFIX}MAX_NODES")),
    }

    metrics = _parse_env_list(env.get(f"{ENV_PREFIX}COMPARE_METRICS"))
    if metrics is not None:
        config_kwargs["compare_metrics"] = metrics

    return _build_config(config_kwargs, origin="environment")


def load_config_from_file(path: Path) -> Config:
    """
    Load configuration from a JSON or YAML file.

    A missing file falls back to environment variables. A file that
    exists but cannot be read or validated raises ConfigurationError.
    """
    if not path.exists():
        logger.warning("Config file not found: %s, using environment", path)
        return load_config_from_env()

    try:
        with open(path, encoding="utf-8") as f:
            if path.suffix in (".yaml", ".yml"):
                data = yaml.safe_load(f)
            else:
                data = json.load(f)
    except (OSError, json.JSONDecodeError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Failed to load config from {path}: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigurationError(
            f"Config file {path} must contain a mapping, got {type(data).__name__}"
        )

    return _build_config(data, origin=str(path))


def _build_config(values: dict[str, Any], origin: str) -> Config:
    try:
        return Config(**values)
    except ValidationError as e:
        first = e.errors()[0]
        key = ".".join(str(part) for part in first["loc"]) or None
        raise ConfigurationError(
            f"Invalid configuration from {origin}: {first['msg']}",
            config_key=key,
        ) from e


@lru_cache(maxsize=1)
def get_config() -> Config:
    """
    Get the global configuration instance.

    Loads from:
    1. PLANSENSE_CONFIG_FILE environment variable (if set)
    2. Environment variables (default)

    Result is cached for the lifetime of the process.
    """
    config_file = os.environ.get(f"{ENV_PREFIX}CONFIG_FILE")

    if config_file:
        return load_config_from_file(Path(config_file))

    return load_config_from_env()


def reset_config() -> None:
    """Reset the cached configuration (mainly for testing)."""
    get_config.cache_clear()
