"""Shared test fixtures."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

import pytest

from beaconwatch.health.engine import StatusRecord, StatusReporter, StatusStore

NOW = datetime(2025, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def store(tmp_path: Path) -> StatusStore:
    return StatusStore(db_path=tmp_path / "status.db")


@pytest.fixture
def reporter(store: StatusStore) -> StatusReporter:
    return StatusReporter(store, executable_name="test", version="0.0.0", clock=lambda: NOW)


def record(name: str, status: str, at: datetime) -> StatusRecord:
    return StatusRecord(name=name, status=status, reported_at=at)
