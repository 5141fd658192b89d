"""
Pytest configuration and fixtures for remote caching tests.
"""

from __future__ import annotations

import os
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import AsyncGenerator, Generator
from unittest.mock import patch

import pytest

from remote_caching.cache import RemoteCaching
from remote_caching.config import Settings, clear_settings_cache


class FakeClock:
    """Controllable clock returning aware UTC datetimes."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def temp_dir(tmp_path: Path) -> Path:
    """Provide a temporary directory for test outputs."""
    return tmp_path


@pytest.fixture
def mock_env_vars(temp_dir: Path) -> Generator[dict[str, str], None, None]:
    """Provide mock environment variables for testing."""
    env_vars = {
        "REMOTE_CACHING_CACHE_DIR": str(temp_dir / "env_cache"),
        "REMOTE_CACHING_DEFAULT_TTL_SECONDS": "120",
        "REMOTE_CACHING_VERBOSE": "true",
        "REMOTE_CACHING_LOG_LEVEL": "DEBUG",
    }

    with patch.dict(os.environ, env_vars, clear=False):
        clear_settings_cache()
        yield env_vars


@pytest.fixture
def test_settings(temp_dir: Path) -> Settings:
    """Settings isolated from the environment and any .env file."""
    return Settings(_env_file=None, CACHE_DIR=temp_dir / "cache")


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def db_path(temp_dir: Path) -> Path:
    return temp_dir / "cache" / "remote_caching.db"


@pytest.fixture
async def cache(
    db_path: Path, test_settings: Settings, clock: FakeClock
) -> AsyncGenerator[RemoteCaching, None]:
    """Create an initialized cache on a temporary database."""
    remote_caching = RemoteCaching(db_path=db_path, settings=test_settings, clock=clock)
    await remote_caching.init(verbose=True)
    yield remote_caching
    await remote_caching.dispose()


@pytest.fixture(autouse=True)
def reset_settings_cache() -> Generator[None, None, None]:
    """Automatically reset settings cache before and after each test."""
    clear_settings_cache()
    yield
    clear_settings_cache()
