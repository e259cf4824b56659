"""
Configuration management for the hostmon service.

This module implements the AppConfig Pydantic model and configuration loading.

Configuration is loaded from multiple sources with layered precedence:
1. Built-in defaults (Pydantic model defaults)
2. YAML config file (/etc/hostmon/config.yml or --config path)
3. Environment variables (HOSTMON_* prefix, __ for nesting)
4. Command-line arguments (highest precedence)
"""

from __future__ import annotations

import argparse
import os
from datetime import timezone
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator

from hostmon.metrics.timerange import parse_utc_offset

DEFAULT_CONFIG_PATH = Path("/etc/hostmon/config.yml")
DEFAULT_ENV_PREFIX = "HOSTMON_"

# =============================================================================
# Server Configuration
# =============================================================================


class ServerConfig(BaseModel):
    """Server settings configuration.

    Attributes:
        listen: Listen address and port (e.g., "127.0.0.1:8080").
        log_level: Initial application log level.
    """

    listen: str = Field(
        default="127.0.0.1:8080",
        description="Listen address and port (e.g., '127.0.0.1:8080' or '0.0.0.0:8080')",
    )
    log_level: str = Field(
        default="info",
        description="Log level: debug, info, warn, error",
    )

    @field_validator("listen")
    @classmethod
    def validate_listen(cls, v: str) -> str:
        """Validate the host:port form."""
        host, sep, port = v.rpartition(":")
        if not sep or not host or not port.isdigit() or not 0 < int(port) < 65536:
            raise ValueError(f"Invalid listen address: {v}. Expected 'host:port'")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate and normalize log level."""
        valid_levels = {"debug", "info", "warn", "warning", "error", "critical"}
        v_lower = v.lower()
        if v_lower not in valid_levels:
            raise ValueError(
                f"Invalid log level: {v}. Must be one of: {', '.join(sorted(valid_levels))}"
            )
        if v_lower == "warn":
            return "warning"
        return v_lower

    @property
    def host(self) -> str:
        """Host part of the listen address."""
        return self.listen.rpartition(":")[0]

    @property
    def port(self) -> int:
        """Port part of the listen address."""
        return int(self.listen.rpartition(":")[2])


# =============================================================================
# Logging Configuration
# =============================================================================


class LoggingConfig(BaseModel):
    """Logging configuration.

    Attributes:
        level: Log level.
        log_to_stdout: Whether to log to stdout.
        json_format: Emit JSON lines instead of plain text.
    """

    level: str = Field(
        default="info",
        description="Log level",
    )
    log_to_stdout: bool = Field(
        default=True,
        description="Whether to log to stdout",
    )
    json_format: bool = Field(
        default=True,
        description="Emit structured JSON log lines",
    )


# =============================================================================
# Storage Configuration
# =============================================================================


class StorageConfig(BaseModel):
    """Sample storage configuration.

    Attributes:
        path: Path to the SQLite database holding the samples.
        timeout_seconds: Upper bound for a single storage call.
    """

    path: str = Field(
        default="/var/lib/hostmon/monitor.db",
        description="Path to the SQLite sample database",
    )
    timeout_seconds: float = Field(
        default=5.0,
        gt=0,
        description="Maximum duration of a single storage call in seconds",
    )


# =============================================================================
# Collector Configuration
# =============================================================================


class CollectorConfig(BaseModel):
    """Background collector configuration.

    Attributes:
        enabled: Whether the collector runs alongside the server.
        interval_seconds: Time between two samples.
        cpu_sample_seconds: Window over which CPU usage is measured.
    """

    enabled: bool = Field(
        default=True,
        description="Run the background collector",
    )
    interval_seconds: float = Field(
        default=1.0,
        gt=0,
        le=3600,
        description="Sampling interval in seconds",
    )
    cpu_sample_seconds: float = Field(
        default=0.1,
        ge=0,
        le=10,
        description="CPU usage measurement window in seconds",
    )


# =============================================================================
# Time Configuration
# =============================================================================


class TimeConfig(BaseModel):
    """Reference time zone configuration.

    All timestamps are normalized to this fixed offset before they are
    compared or persisted, and the default query range is the current day
    in this offset.

    Attributes:
        utc_offset: Fixed offset in '+HH:MM' / '-HH:MM' form.
    """

    utc_offset: str = Field(
        default="+00:00",
        description="Reference UTC offset, e.g. '+08:00'",
    )

    @field_validator("utc_offset")
    @classmethod
    def validate_utc_offset(cls, v: str) -> str:
        """Validate the offset can be turned into a timezone."""
        parse_utc_offset(v)
        return v

    @property
    def tzinfo(self) -> timezone:
        """The reference offset as a tzinfo."""
        return parse_utc_offset(self.utc_offset)


# =============================================================================
# Main Application Configuration
# =============================================================================


class AppConfig(BaseModel):
    """
    Main application configuration model.

    Attributes:
        server: Server settings.
        logging: Logging configuration.
        storage: Sample storage configuration.
        collector: Background collector configuration.
        time: Reference time zone configuration.
    """

    server: ServerConfig = Field(
        default_factory=ServerConfig,
        description="Server settings",
    )
    logging: LoggingConfig = Field(
        default_factory=LoggingConfig,
        description="Logging configuration",
    )
    storage: StorageConfig = Field(
        default_factory=StorageConfig,
        description="Sample storage configuration",
    )
    collector: CollectorConfig = Field(
        default_factory=CollectorConfig,
        description="Collector configuration",
    )
    time: TimeConfig = Field(
        default_factory=TimeConfig,
        description="Reference time zone configuration",
    )


# =============================================================================
# Configuration Loading Functions
# =============================================================================


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """
    Deep merge two dictionaries.

    Args:
        base: The base dictionary.
        override: The dictionary with values to override.

    Returns:
        A new dictionary with merged values.
    """
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _load_yaml_config(config_path: Path) -> dict[str, Any]:
    """
    Load configuration from a YAML file.

    Args:
        config_path: Path to the YAML configuration file.

    Returns:
        Dictionary with configuration values.

    Raises:
        FileNotFoundError: If the config file doesn't exist.
        yaml.YAMLError: If the YAML is invalid.
    """
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path) as f:
        return yaml.safe_load(f) or {}


def _parse_env_value(value: str) -> Any:
    """
    Parse an environment variable value to appropriate Python type.

    Args:
        value: String value from environment variable.

    Returns:
        Parsed value (bool, int, float, or string).
    """
    if value.lower() in ("true", "yes", "on"):
        return True
    if value.lower() in ("false", "no", "off"):
        return False

    try:
        return int(value)
    except ValueError:
        pass

    try:
        return float(value)
    except ValueError:
        pass

    return value


def _load_env_config(prefix: str = DEFAULT_ENV_PREFIX) -> dict[str, Any]:
    """
    Load configuration from environment variables.

    - Prefix: HOSTMON_ (configurable)
    - Nested keys: Double underscore (__) separator
    - Example: HOSTMON_STORAGE__PATH=/tmp/monitor.db

    Args:
        prefix: Environment variable prefix.

    Returns:
        Dictionary with configuration values.
    """
    result: dict[str, Any] = {}

    for key, value in os.environ.items():
        if not key.startswith(prefix):
            continue

        parts = key[len(prefix) :].lower().split("__")

        current = result
        for part in parts[:-1]:
            current = current.setdefault(part, {})

        current[parts[-1]] = _parse_env_value(value)

    return result


def _parse_cli_args(args: list[str] | None = None) -> dict[str, Any]:
    """
    Parse command-line arguments.

    Args:
        args: Command-line arguments. If None, uses sys.argv.

    Returns:
        Dictionary with parsed arguments.
    """
    parser = argparse.ArgumentParser(
        prog="hostmon",
        description="Host resource monitor",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )

    parser.add_argument(
        "--config",
        "-c",
        type=str,
        help="Path to configuration file",
    )

    parser.add_argument(
        "--listen",
        type=str,
        help="Override listen address (host:port)",
    )

    parser.add_argument(
        "--log-level",
        type=str,
        choices=["debug", "info", "warning", "error"],
        help="Override log level",
    )

    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging with plain-text output",
    )

    parsed = parser.parse_args(args)

    result: dict[str, Any] = {}

    if parsed.config:
        result["_config_path"] = parsed.config

    if parsed.listen:
        result.setdefault("server", {})["listen"] = parsed.listen

    if parsed.log_level:
        result.setdefault("server", {})["log_level"] = parsed.log_level
        result.setdefault("logging", {})["level"] = parsed.log_level

    if parsed.debug:
        result.setdefault("server", {})["log_level"] = "debug"
        result.setdefault("logging", {}).update({"level": "debug", "json_format": False})

    return result


def load_config(
    config_path: Path | str | None = None,
    env_prefix: str = DEFAULT_ENV_PREFIX,
    cli_args: list[str] | None = None,
) -> AppConfig:
    """
    Load configuration from all sources with layered precedence.

    Later sources override earlier ones: defaults, YAML file, environment
    variables, command-line arguments.

    Args:
        config_path: Path to YAML configuration file. If None, uses the CLI
            --config argument or the default path when it exists.
        env_prefix: Prefix for environment variables.
        cli_args: Command-line arguments. If None, uses sys.argv.

    Returns:
        Fully configured AppConfig instance.

    Raises:
        FileNotFoundError: If specified config file doesn't exist.
        ValidationError: If configuration is invalid.

    Example:
        >>> config = load_config(cli_args=[])
        >>> config.server.listen
        '127.0.0.1:8080'
    """
    config_dict: dict[str, Any] = {}

    # CLI args are parsed first to find the config path
    cli_config = _parse_cli_args(cli_args)

    if config_path is None:
        if "_config_path" in cli_config:
            config_path = Path(cli_config.pop("_config_path"))
        elif DEFAULT_CONFIG_PATH.exists():
            config_path = DEFAULT_CONFIG_PATH
    else:
        cli_config.pop("_config_path", None)
        config_path = Path(config_path)

    if config_path is not None:
        config_dict = _deep_merge(config_dict, _load_yaml_config(config_path))

    config_dict = _deep_merge(config_dict, _load_env_config(env_prefix))
    config_dict = _deep_merge(config_dict, cli_config)

    return AppConfig(**config_dict)
