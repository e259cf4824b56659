"""
Pytest configuration for the hostmon tests.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator, Iterator
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest

from hostmon.metrics.storage import Sample, SampleStore

# Configure pytest-asyncio mode
pytest_plugins = ["pytest_asyncio"]

BASE_TIME = datetime(2024, 5, 1, 12, 0, 0, tzinfo=UTC)


def pytest_configure(config: pytest.Config) -> None:
    """Configure pytest markers."""
    config.addinivalue_line(
        "markers",
        "integration: marks tests as integration tests (deselect with '-m \"not integration\"')",
    )


def build_sample(offset_seconds: float = 0.0, **overrides: float) -> Sample:
    """Build a sample at BASE_TIME + offset_seconds."""
    values = {
        "cpu_usage": 12.5,
        "mem_usage": 48.25,
        "load_average": 0.75,
        "disk_io": 1_048_576.0,
        "network_io": 2_097_152.0,
    }
    values.update(overrides)
    return Sample(timestamp=BASE_TIME + timedelta(seconds=offset_seconds), **values)


@pytest.fixture
def temp_db_path(tmp_path: Path) -> Iterator[Path]:
    """Create a temporary database path."""
    yield tmp_path / "test_monitor.db"


@pytest.fixture
async def store(temp_db_path: Path) -> AsyncGenerator[SampleStore, None]:
    """Create an initialized SampleStore instance."""
    store = SampleStore(temp_db_path, reference_tz=UTC)
    await store.initialize()
    yield store
    await store.close()


@pytest.fixture
def make_sample():
    """Factory fixture building samples relative to BASE_TIME."""
    return build_sample


@pytest.fixture
def base_time() -> datetime:
    """Reference instant used by make_sample."""
    return BASE_TIME
