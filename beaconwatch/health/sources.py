"""Data store adapters observed by the freshness probes.

The probes only depend on the two protocols; the SQL adapters read the
explorer's SQLite databases read-only.
"""

from __future__ import annotations

import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Protocol


class StoreEmptyError(LookupError):
    """Raised when a table holds no rows to derive freshness from."""


class PrimaryStore(Protocol):
    def max_attestation_slot(self) -> int: ...

    def max_block_slot(self) -> int: ...

    def max_epoch(self) -> int: ...


class SecondaryStore(Protocol):
    def latest_canonical_block(self) -> tuple[int, datetime]: ...

    def latest_indexed_block_number(self) -> int: ...


class _SqlStore:
    def __init__(self, db_path: Path | str, timeout: float = 60.0) -> None:
        self._db_path = Path(db_path)
        self._timeout = timeout

    def _conn(self) -> sqlite3.Connection:
        return sqlite3.connect(
            f"file:{self._db_path}?mode=ro", uri=True, timeout=self._timeout,
        )

    def _scalar(self, sql: str, table: str) -> int:
        conn = self._conn()
        try:
            row = conn.execute(sql).fetchone()
        finally:
            conn.close()
        if row is None or row[0] is None:
            raise StoreEmptyError(f"{table} table is empty")
        return int(row[0])


class SqlPrimaryStore(_SqlStore):
    """Consensus-layer tables: validators, blocks, epochs."""

    def max_attestation_slot(self) -> int:
        return self._scalar("SELECT MAX(lastattestationslot) FROM validators", "validators")

    def max_block_slot(self) -> int:
        return self._scalar("SELECT MAX(slot) FROM blocks", "blocks")

    def max_epoch(self) -> int:
        return self._scalar("SELECT MAX(epoch) FROM epochs", "epochs")


class SqlSecondaryStore(_SqlStore):
    """Execution-layer index: canonical `blocks(number, time)` and indexed `data`."""

    def latest_canonical_block(self) -> tuple[int, datetime]:
        conn = self._conn()
        try:
            row = conn.execute(
                "SELECT number, time FROM blocks ORDER BY number DESC LIMIT 1",
            ).fetchone()
        finally:
            conn.close()
        if row is None:
            raise StoreEmptyError("blocks table is empty")
        return int(row[0]), datetime.fromtimestamp(row[1], tz=timezone.utc)

    def latest_indexed_block_number(self) -> int:
        return self._scalar("SELECT MAX(block_number) FROM data", "data")
