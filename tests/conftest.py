"""Pytest configuration and shared fixtures."""

from __future__ import annotations

from collections.abc import Generator
from datetime import datetime, timedelta

import pytest

from spcengine.core.config import get_settings
from spcengine.core.measurement import Measurement


def make_measurements(
    values: list[float],
    start: datetime | None = None,
    interval: timedelta = timedelta(minutes=1),
) -> list[Measurement]:
    """Build timestamped measurements with 1-based indices."""
    start = start or datetime(2025, 1, 1, 8, 0, 0)
    return [
        Measurement(index=i + 1, value=v, timestamp=start + i * interval)
        for i, v in enumerate(values)
    ]


@pytest.fixture(autouse=True)
def clear_settings_cache() -> Generator[None, None, None]:
    """Make every test read settings from its own environment."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def measurements_from():
    """Factory building timestamped measurements from plain values."""
    return make_measurements


@pytest.fixture
def sample_timestamp() -> datetime:
    """Base timestamp for testing."""
    return datetime(2025, 1, 1, 12, 0, 0)


@pytest.fixture
def in_control_values() -> list[float]:
    """Twenty values scattered tightly around 100."""
    return [
        100.2, 99.8, 100.1, 99.9, 100.3, 99.7, 100.0, 100.1, 99.9, 100.2,
        99.8, 100.0, 100.1, 99.9, 100.2, 99.8, 100.0, 100.1, 99.9, 100.0,
    ]
