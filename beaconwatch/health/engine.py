"""Status engine — verdicts, the SQLite status store and the reporter.

Every probe iteration ends in exactly one appended row. Rows are never
updated; for a given name the row with the greatest last_update wins.
"""

from __future__ import annotations

import json
import logging
import os
import sqlite3
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from .. import __version__

logger = logging.getLogger(__name__)

DB_PATH = Path("data") / "status.db"

OK = "OK"

_TS_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def format_ts(dt: datetime) -> str:
    """Fixed-width UTC timestamp; lexical order equals time order."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).strftime(_TS_FORMAT)


def parse_ts(value: str) -> datetime:
    return datetime.strptime(value, _TS_FORMAT).replace(tzinfo=timezone.utc)


# ── Models ───────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Verdict:
    """Outcome of one probe iteration: healthy, or unhealthy with a message."""

    ok: bool
    message: str = ""

    @classmethod
    def healthy(cls) -> Verdict:
        return cls(ok=True, message=OK)

    @classmethod
    def error(cls, message: str) -> Verdict:
        return cls(ok=False, message=message)

    @property
    def status(self) -> str:
        """What gets persisted in the status column."""
        return OK if self.ok else self.message


@dataclass(frozen=True)
class StatusRecord:
    """One row of the service_status table."""

    name: str
    status: str
    reported_at: datetime
    executable_name: str = ""
    version: str = ""
    pid: int = 0
    extra: dict[str, Any] | None = None

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> StatusRecord:
        meta = row["metadata"]
        return cls(
            name=row["name"],
            status=row["status"],
            reported_at=parse_ts(row["last_update"]),
            executable_name=row["executable_name"] or "",
            version=row["version"] or "",
            pid=row["pid"] or 0,
            extra=json.loads(meta) if meta is not None else None,
        )


# ── SQLite storage ───────────────────────────────────────────────────────────


class StatusStore:
    """Append-only SQLite table of reported statuses.

    Safe for concurrent writers: each operation opens its own connection,
    so probes running on different executor threads never share one.
    """

    def __init__(self, db_path: Path | str | None = None) -> None:
        self._db_path = Path(db_path or DB_PATH)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    @contextmanager
    def _conn(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(str(self._db_path), timeout=30)
        conn.row_factory = sqlite3.Row
        try:
            conn.execute("PRAGMA journal_mode=WAL")
            with conn:
                yield conn
        finally:
            conn.close()

    def _init_db(self) -> None:
        with self._conn() as conn:
            conn.executescript("""
                CREATE TABLE IF NOT EXISTS service_status (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL,
                    executable_name TEXT,
                    version TEXT,
                    pid INTEGER,
                    status TEXT NOT NULL,
                    metadata TEXT,
                    last_update TEXT NOT NULL
                );

                CREATE INDEX IF NOT EXISTS idx_service_status_last_update
                    ON service_status (last_update DESC);
            """)

    def insert(self, record: StatusRecord) -> None:
        """Append one record. There is no upsert."""
        with self._conn() as conn:
            conn.execute(
                "INSERT INTO service_status "
                "(name, executable_name, version, pid, status, metadata, last_update) "
                "VALUES (?, ?, ?, ?, ?, ?, ?)",
                (
                    record.name, record.executable_name, record.version, record.pid,
                    record.status,
                    json.dumps(record.extra) if record.extra is not None else None,
                    format_ts(record.reported_at),
                ),
            )

    def recent(self, since: datetime) -> list[StatusRecord]:
        """Records reported strictly after `since`, newest first."""
        with self._conn() as conn:
            rows = conn.execute(
                "SELECT * FROM service_status WHERE last_update > ? "
                "ORDER BY last_update DESC, id DESC",
                (format_ts(since),),
            ).fetchall()
        return [StatusRecord.from_row(r) for r in rows]

    def delete_older_than(self, cutoff: datetime) -> int:
        """Remove records reported before `cutoff`. Returns the row count."""
        with self._conn() as conn:
            cursor = conn.execute(
                "DELETE FROM service_status WHERE last_update < ?",
                (format_ts(cutoff),),
            )
        return cursor.rowcount


# ── Reporter ─────────────────────────────────────────────────────────────────


class StatusReporter:
    """Stamps and appends status records.

    Store errors propagate; callers log them and move on.
    """

    def __init__(
        self,
        store: StatusStore,
        executable_name: str = "beaconwatch",
        version: str = __version__,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.store = store
        self.executable_name = executable_name
        self.version = version
        self._clock = clock

    def report(self, name: str, status: str, extra: dict[str, Any] | None = None) -> StatusRecord:
        record = StatusRecord(
            name=name,
            status=status,
            reported_at=self._clock(),
            executable_name=self.executable_name,
            version=self.version,
            pid=os.getpid(),
            extra=extra,
        )
        self.store.insert(record)
        return record
