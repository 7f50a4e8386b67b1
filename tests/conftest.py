"""Pytest configuration for test isolation.

The CLI persists records to the database named by ``DASHBOARD_DATABASE_URL``
(default ``sqlite:///dashboard.db`` in the working directory). When tests run
in the same working tree, a shared database file would leak ledger state
between tests and break balance assertions.

To keep tests hermetic, we point the database URL at a per-test SQLite file
and clear provider settings via an autouse fixture.
"""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

# Make sure the workspace `packages/` dir is on sys.path so `dashboard_ingest` is importable
_ROOT = Path(__file__).resolve().parents[1]
_PKG_DIR = _ROOT / "packages"
sys.path[:0] = [p for p in [str(_PKG_DIR), str(_ROOT)] if p not in sys.path]


@pytest.fixture(autouse=True)
def _isolate_database(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> str:
    """Force a per-test database so tests don't share on-disk state."""

    url = f"sqlite:///{(tmp_path / 'dashboard.db').as_posix()}"
    monkeypatch.setenv("DASHBOARD_DATABASE_URL", url)
    monkeypatch.setenv("DASHBOARD_PAGE_DELAY_MS", "0")
    for name in (
        "DASHBOARD_LLM_BASE_URL",
        "DASHBOARD_BALANCE_TOLERANCE",
        "DASHBOARD_PAGE_TIMEOUT_S",
        "DASHBOARD_INGEST_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("OPENAI_API_KEY", "test-key")
    return url
