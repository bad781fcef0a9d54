"""Pytest configuration for specgate tests."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from specgate.infrastructure.marker_store import FileMarkerStore
from specgate.infrastructure.policy_config import SpecgatePolicy
from specgate.infrastructure.session_paths import SessionPaths, session_paths


class ManualClock:
    """Clock that only moves when a test advances it."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta: float) -> None:
        self.now = self.now + timedelta(**delta)


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch):
    """Hooks must not pick up the developer's project root or policy override."""
    for key in (
        "SPECGATE_SESSION_ROOT",
        "SPECGATE_POLICY_FILE",
        "SPECGATE_DIAGNOSTICS_ALLOW_WRITE",
        "CLAUDE_PROJECT_DIR",
    ):
        monkeypatch.delenv(key, raising=False)


@pytest.fixture
def clock() -> ManualClock:
    # Anchored to real time so file mtimes written during a test stay comparable.
    return ManualClock(datetime.now(timezone.utc).replace(microsecond=0))


@pytest.fixture
def policy() -> SpecgatePolicy:
    return SpecgatePolicy()


@pytest.fixture
def paths(tmp_path: Path, policy: SpecgatePolicy) -> SessionPaths:
    return session_paths(tmp_path, policy)


@pytest.fixture
def store(paths: SessionPaths, clock: ManualClock) -> FileMarkerStore:
    return FileMarkerStore(paths.markers_dir, clock=clock)
