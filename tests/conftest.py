# tests/conftest.py

"""Shared pytest fixtures for all shelfsync tests."""

from collections.abc import Generator
from pathlib import Path
from unittest.mock import patch

import pytest

from shelfsync.config.settings import Settings


@pytest.fixture(autouse=True)
def isolated_paths(tmp_path: Path) -> Generator[None, None, None]:
    """Point the store and run logs at a per-test temp directory."""
    data_dir = tmp_path / "data"
    with patch.object(Settings, "DATA_DIR", data_dir), patch.object(
        Settings, "STORE_PATH", data_dir / "shelfsync.db"
    ), patch.object(Settings, "LOGS_DIR", tmp_path / "logs"):
        yield
