"""Tests for chain time conversion and the SQL store adapters."""

from __future__ import annotations

import sqlite3
from datetime import datetime, timezone
from pathlib import Path

import pytest

from beaconwatch.chain import ChainClock
from beaconwatch.health.sources import SqlPrimaryStore, SqlSecondaryStore, StoreEmptyError


class TestChainClock:
    def test_genesis(self) -> None:
        clock = ChainClock()
        assert clock.slot_to_time(0) == datetime(2020, 12, 1, 12, 0, 23, tzinfo=timezone.utc)

    def test_slot_duration(self) -> None:
        clock = ChainClock(genesis_timestamp=0)
        assert clock.slot_to_time(5).timestamp() == 60

    def test_epoch_is_first_slot(self) -> None:
        clock = ChainClock(genesis_timestamp=0)
        assert clock.epoch_to_time(2) == clock.slot_to_time(64)


def _make_db(path: Path, script: str) -> Path:
    conn = sqlite3.connect(str(path))
    conn.executescript(script)
    conn.commit()
    conn.close()
    return path


@pytest.fixture
def primary_db(tmp_path: Path) -> Path:
    return _make_db(tmp_path / "cl.db", """
        CREATE TABLE validators (validatorindex INTEGER, lastattestationslot INTEGER);
        CREATE TABLE blocks (slot INTEGER);
        CREATE TABLE epochs (epoch INTEGER);
        INSERT INTO validators VALUES (1, 100), (2, 120), (3, NULL);
        INSERT INTO blocks VALUES (118), (121);
        INSERT INTO epochs VALUES (2), (3);
    """)


@pytest.fixture
def secondary_db(tmp_path: Path) -> Path:
    return _make_db(tmp_path / "el.db", """
        CREATE TABLE blocks (number INTEGER, time INTEGER);
        CREATE TABLE data (block_number INTEGER);
        INSERT INTO blocks VALUES (10, 1700000000), (11, 1700000012);
        INSERT INTO data VALUES (9), (10);
    """)


class TestSqlPrimaryStore:
    def test_maxima(self, primary_db: Path) -> None:
        store = SqlPrimaryStore(primary_db)
        assert store.max_attestation_slot() == 120
        assert store.max_block_slot() == 121
        assert store.max_epoch() == 3

    def test_empty_table(self, tmp_path: Path) -> None:
        db = _make_db(tmp_path / "empty.db", "CREATE TABLE epochs (epoch INTEGER);")
        with pytest.raises(StoreEmptyError, match="epochs table is empty"):
            SqlPrimaryStore(db).max_epoch()

    def test_missing_database(self, tmp_path: Path) -> None:
        with pytest.raises(sqlite3.Error):
            SqlPrimaryStore(tmp_path / "absent.db").max_block_slot()


class TestSqlSecondaryStore:
    def test_latest_canonical_block(self, secondary_db: Path) -> None:
        number, at = SqlSecondaryStore(secondary_db).latest_canonical_block()
        assert number == 11
        assert at == datetime.fromtimestamp(1700000012, tz=timezone.utc)

    def test_latest_indexed(self, secondary_db: Path) -> None:
        assert SqlSecondaryStore(secondary_db).latest_indexed_block_number() == 10

    def test_empty_blocks(self, tmp_path: Path) -> None:
        db = _make_db(tmp_path / "empty.db", "CREATE TABLE blocks (number INTEGER, time INTEGER);")
        with pytest.raises(StoreEmptyError):
            SqlSecondaryStore(db).latest_canonical_block()
