"""
Tests for the configuration module.

This test module validates:
- Configuration loading from YAML files
- Environment variable overrides
- CLI argument overrides
- Configuration precedence (defaults < YAML < env vars < CLI args)
- Pydantic model validation with invalid inputs
"""

from __future__ import annotations

from datetime import timedelta
from pathlib import Path
from typing import Any

import pytest
import yaml
from pydantic import ValidationError

from hostmon.config import (
    AppConfig,
    CollectorConfig,
    ServerConfig,
    StorageConfig,
    TimeConfig,
    _deep_merge,
    _load_env_config,
    _parse_cli_args,
    _parse_env_value,
    load_config,
)

# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Remove HOSTMON_* variables inherited from the environment."""
    import os

    for key in list(os.environ):
        if key.startswith("HOSTMON_"):
            monkeypatch.delenv(key)


@pytest.fixture
def sample_yaml_config() -> dict[str, Any]:
    """Sample YAML configuration for testing."""
    return {
        "server": {"listen": "0.0.0.0:9000", "log_level": "debug"},
        "storage": {"path": "/data/monitor.db", "timeout_seconds": 2.5},
        "collector": {"interval_seconds": 5},
        "time": {"utc_offset": "+08:00"},
    }


@pytest.fixture
def config_file(tmp_path: Path, sample_yaml_config: dict[str, Any]) -> Path:
    """Write the sample YAML configuration to disk."""
    path = tmp_path / "config.yml"
    path.write_text(yaml.safe_dump(sample_yaml_config))
    return path


# =============================================================================
# Tests for Default Configuration
# =============================================================================


class TestDefaults:
    """Tests for built-in defaults."""

    def test_app_config_defaults(self) -> None:
        """Test default values of the whole configuration."""
        config = AppConfig()

        assert config.server.listen == "127.0.0.1:8080"
        assert config.server.log_level == "info"
        assert config.storage.path == "/var/lib/hostmon/monitor.db"
        assert config.storage.timeout_seconds == 5.0
        assert config.collector.enabled is True
        assert config.collector.interval_seconds == 1.0
        assert config.time.utc_offset == "+00:00"
        assert config.time.tzinfo.utcoffset(None) == timedelta(0)

    def test_server_host_and_port(self) -> None:
        """Test splitting the listen address."""
        server = ServerConfig(listen="0.0.0.0:9100")

        assert server.host == "0.0.0.0"
        assert server.port == 9100


# =============================================================================
# Tests for Validation
# =============================================================================


class TestValidation:
    """Tests for Pydantic validation of invalid inputs."""

    def test_log_level_warn_normalized(self) -> None:
        """Test 'warn' is normalized to 'warning'."""
        assert ServerConfig(log_level="WARN").log_level == "warning"

    def test_invalid_log_level(self) -> None:
        """Test unknown log levels are rejected."""
        with pytest.raises(ValidationError):
            ServerConfig(log_level="verbose")

    @pytest.mark.parametrize("listen", ["8080", "localhost:", "host:99999", ":80"])
    def test_invalid_listen(self, listen: str) -> None:
        """Test malformed listen addresses are rejected."""
        with pytest.raises(ValidationError):
            ServerConfig(listen=listen)

    @pytest.mark.parametrize("interval", [0, -1, 7200])
    def test_invalid_interval(self, interval: float) -> None:
        """Test the collector interval must be positive and bounded."""
        with pytest.raises(ValidationError):
            CollectorConfig(interval_seconds=interval)

    def test_invalid_storage_timeout(self) -> None:
        """Test storage timeout must be positive."""
        with pytest.raises(ValidationError):
            StorageConfig(timeout_seconds=0)

    def test_utc_offset_parsed(self) -> None:
        """Test the reference offset becomes a fixed timezone."""
        config = TimeConfig(utc_offset="-05:30")

        assert config.tzinfo.utcoffset(None) == -timedelta(hours=5, minutes=30)

    @pytest.mark.parametrize("offset", ["08:00", "+8", "+25:00", "UTC", "+08:60"])
    def test_invalid_utc_offset(self, offset: str) -> None:
        """Test malformed offsets are rejected."""
        with pytest.raises(ValidationError):
            TimeConfig(utc_offset=offset)


# =============================================================================
# Tests for Loading Helpers
# =============================================================================


class TestHelpers:
    """Tests for the merge and parse helpers."""

    def test_deep_merge(self) -> None:
        """Test nested dictionaries are merged, not replaced."""
        base = {"server": {"listen": "a:1", "log_level": "info"}}
        override = {"server": {"listen": "b:2"}}

        assert _deep_merge(base, override) == {
            "server": {"listen": "b:2", "log_level": "info"}
        }
        assert base["server"]["listen"] == "a:1"

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [("true", True), ("off", False), ("5", 5), ("0.5", 0.5), ("+08:00", "+08:00")],
    )
    def test_parse_env_value(self, raw: str, expected: Any) -> None:
        """Test environment values are typed."""
        assert _parse_env_value(raw) == expected

    def test_load_env_config(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test nested environment variables."""
        monkeypatch.setenv("HOSTMON_STORAGE__PATH", "/tmp/x.db")
        monkeypatch.setenv("HOSTMON_COLLECTOR__ENABLED", "false")

        assert _load_env_config() == {
            "storage": {"path": "/tmp/x.db"},
            "collector": {"enabled": False},
        }

    def test_parse_cli_args(self) -> None:
        """Test CLI arguments map onto config sections."""
        result = _parse_cli_args(["--config", "/etc/x.yml", "--listen", "0.0.0.0:1", "--debug"])

        assert result["_config_path"] == "/etc/x.yml"
        assert result["server"] == {"listen": "0.0.0.0:1", "log_level": "debug"}
        assert result["logging"] == {"level": "debug", "json_format": False}


# =============================================================================
# Tests for load_config
# =============================================================================


class TestLoadConfig:
    """Tests for layered configuration loading."""

    def test_load_from_yaml(self, config_file: Path) -> None:
        """Test values are read from the YAML file."""
        config = load_config(config_file, cli_args=[])

        assert config.server.listen == "0.0.0.0:9000"
        assert config.storage.path == "/data/monitor.db"
        assert config.collector.interval_seconds == 5
        assert config.time.tzinfo.utcoffset(None) == timedelta(hours=8)

    def test_missing_yaml_raises(self, tmp_path: Path) -> None:
        """Test an explicit missing file is an error."""
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "missing.yml", cli_args=[])

    def test_precedence(self, config_file: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test defaults < YAML < env vars < CLI args."""
        monkeypatch.setenv("HOSTMON_SERVER__LISTEN", "10.0.0.1:7000")
        monkeypatch.setenv("HOSTMON_STORAGE__PATH", "/env/monitor.db")

        config = load_config(
            cli_args=["--config", str(config_file), "--listen", "10.0.0.2:7001"]
        )

        assert config.server.listen == "10.0.0.2:7001"
        assert config.storage.path == "/env/monitor.db"
        assert config.storage.timeout_seconds == 2.5
        assert config.collector.cpu_sample_seconds == 0.1

    def test_invalid_env_value(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        """Test invalid overrides surface as validation errors."""
        empty = tmp_path / "empty.yml"
        empty.write_text("")
        monkeypatch.setenv("HOSTMON_TIME__UTC_OFFSET", "nowhere")

        with pytest.raises(ValidationError):
            load_config(empty, cli_args=[])
