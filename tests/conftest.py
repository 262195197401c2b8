"""Pytest configuration and shared fixtures for all tests."""

import os
import sys
import tempfile
from pathlib import Path

# Minimal environment for Settings; integration tests create their own
# database per test, this URL only has to parse.
_tmp_dir = Path(tempfile.mkdtemp(prefix="mlm_engine_tests_"))
os.environ.setdefault("DATABASE_URL", f"sqlite+aiosqlite:///{_tmp_dir / 'settings.db'}")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("LOG_LEVEL", "DEBUG")
os.environ.setdefault("REDIS_HOST", "localhost")

# Add project root to PYTHONPATH
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from datetime import UTC, datetime

import pytest

from mlm_engine.config.admin_config import ConfigSnapshot


# Monday 2026-10-19 .. Sunday 2026-10-25
MONDAY = datetime(2026, 10, 19, 10, 0, tzinfo=UTC)
WEDNESDAY = datetime(2026, 10, 21, 10, 0, tzinfo=UTC)
SATURDAY = datetime(2026, 10, 24, 10, 0, tzinfo=UTC)


@pytest.fixture
def config() -> ConfigSnapshot:
    """Admin config with documented defaults."""
    return ConfigSnapshot()


@pytest.fixture
def wednesday() -> datetime:
    return WEDNESDAY


@pytest.fixture
def saturday() -> datetime:
    return SATURDAY
