"""Pytest configuration for test isolation.

The JSON snapshot gateway writes under a default project-relative directory
(``./.budget_tracker``), and the CLI picks its gateway and user from the
environment. To keep tests hermetic, every test gets its own data directory
and a clean set of the relevant environment variables.
"""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from budget_tracker.models import IdSource


@pytest.fixture(autouse=True)
def _isolate_data_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point ``BUDGET_TRACKER_DATA_DIR`` at the test's own temporary directory."""

    data_root = tmp_path / "data"
    data_root.mkdir(parents=True, exist_ok=True)
    monkeypatch.setenv("BUDGET_TRACKER_DATA_DIR", os.fspath(data_root))
    monkeypatch.delenv("DATABASE_URL", raising=False)
    monkeypatch.delenv("BUDGET_TRACKER_USER", raising=False)
    return data_root


@pytest.fixture
def ids() -> IdSource:
    """Deterministic ids: 1000, 1001, 1002, ..."""

    return IdSource(clock=lambda: 1.0)

