# tests/conftest.py

"""Shared pytest fixtures for all pulse_feed tests."""

from collections.abc import Generator
from pathlib import Path
from unittest.mock import patch

import pytest

from pulse_feed.config.settings import Settings


@pytest.fixture(autouse=True)
def isolated_logs_dir(tmp_path: Path) -> Generator[None, None, None]:
    """Point per-run log files at a temp ``logs/`` dir."""
    with patch.object(Settings, "LOGS_DIR", tmp_path / "logs"):
        yield
