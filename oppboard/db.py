"""Database helpers for the oppboard service."""

from __future__ import annotations

import json
import sqlite3
import threading
import time
import uuid
from collections.abc import Iterable, Iterator, Sequence
from contextlib import contextmanager
from pathlib import Path

SCHEMA_STATEMENTS: Sequence[str] = (
    """
    CREATE TABLE IF NOT EXISTS opportunities (
        id TEXT PRIMARY KEY,
        title TEXT NOT NULL,
        description TEXT NOT NULL,
        description_full TEXT NOT NULL,
        provider TEXT NOT NULL,
        logo_url TEXT NOT NULL,
        category_tags TEXT NOT NULL DEFAULT '[]',
        applicable_groups TEXT NOT NULL DEFAULT '[]',
        apply_url TEXT NOT NULL,
        deadline INTEGER,
        status TEXT NOT NULL CHECK (status IN ('active', 'inactive', 'archived')),
        regions TEXT,
        funding_types TEXT,
        eligibility TEXT,
        created_at INTEGER NOT NULL,
        updated_at INTEGER NOT NULL,
        verified_at INTEGER,
        created_by TEXT NOT NULL,
        archived_at INTEGER,
        archived_by TEXT,
        sort_order REAL
    );
    """,
    "CREATE INDEX IF NOT EXISTS opportunities_by_status ON opportunities(status);",
    "CREATE INDEX IF NOT EXISTS opportunities_by_created ON opportunities(created_at);",
    "CREATE INDEX IF NOT EXISTS opportunities_by_deadline ON opportunities(deadline);",
    "CREATE INDEX IF NOT EXISTS opportunities_by_verified ON opportunities(verified_at);",
    """
    CREATE TABLE IF NOT EXISTS submissions (
        id TEXT PRIMARY KEY,
        opportunity_name TEXT NOT NULL,
        opportunity_type TEXT NOT NULL,
        description TEXT NOT NULL,
        link TEXT NOT NULL,
        user_name TEXT,
        user_twitter TEXT,
        status TEXT NOT NULL,
        created_at INTEGER NOT NULL,
        reviewed_at INTEGER
    );
    """,
    "CREATE INDEX IF NOT EXISTS submissions_by_status ON submissions(status);",
    "CREATE INDEX IF NOT EXISTS submissions_by_created ON submissions(created_at);",
    """
    CREATE TABLE IF NOT EXISTS admins (
        id TEXT PRIMARY KEY,
        email TEXT NOT NULL UNIQUE,
        name TEXT NOT NULL,
        role TEXT NOT NULL CHECK (role IN ('editor', 'manager', 'admin')),
        created_at INTEGER NOT NULL,
        is_active INTEGER NOT NULL DEFAULT 1,
        last_login INTEGER
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS audit_log (
        id INTEGER PRIMARY KEY,
        admin_id TEXT NOT NULL,
        admin_email TEXT NOT NULL,
        action TEXT NOT NULL,
        resource_type TEXT NOT NULL,
        resource_id TEXT NOT NULL,
        changes TEXT,
        timestamp INTEGER NOT NULL
    );
    """,
    "CREATE INDEX IF NOT EXISTS audit_log_by_timestamp ON audit_log(timestamp);",
    "CREATE INDEX IF NOT EXISTS audit_log_by_admin ON audit_log(admin_id);",
)


def encode_list(values: Iterable[str] | None) -> str | None:
    """Serialize a list-valued column; ``None`` stays ``None``."""

    if values is None:
        return None
    return json.dumps(list(values))


def decode_list(raw: str | None) -> list[str] | None:
    if raw is None:
        return None
    return [str(item) for item in json.loads(raw)]


class Database:
    """Convenience wrapper around :mod:`sqlite3` with schema helpers."""

    def __init__(self, path: Path) -> None:
        self.path = path
        self._connection: sqlite3.Connection | None = None
        self._lock = threading.RLock()

    @staticmethod
    def timestamp() -> int:
        """Return the current time as unix milliseconds."""

        return time.time_ns() // 1_000_000

    @staticmethod
    def new_id() -> str:
        """Return a fresh opaque record identifier."""

        return uuid.uuid4().hex

    def connect(self) -> sqlite3.Connection:
        if self._connection is None:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            # FastAPI runs sync endpoints in a worker thread pool.
            self._connection = sqlite3.connect(self.path, check_same_thread=False)
            self._connection.row_factory = sqlite3.Row
        return self._connection

    @property
    def connection(self) -> sqlite3.Connection:
        return self.connect()

    def close(self) -> None:
        if self._connection is not None:
            self._connection.close()
            self._connection = None

    def initialize_schema(self) -> None:
        conn = self.connect()
        with conn:
            for statement in SCHEMA_STATEMENTS:
                conn.execute(statement)

    @contextmanager
    def cursor(self) -> Iterator[sqlite3.Cursor]:
        """Run one transaction; the connection is shared, so writers take turns."""

        with self._lock:
            conn = self.connect()
            cur = conn.cursor()
            try:
                yield cur
                conn.commit()
            except Exception:
                conn.rollback()
                raise
            finally:
                cur.close()

    def execute(self, sql: str, parameters: Iterable[object] | None = None) -> sqlite3.Cursor:
        with self._lock:
            conn = self.connect()
            cur = conn.execute(sql, tuple(parameters or ()))
            conn.commit()
        return cur

    def count(self, table: str) -> int:
        """Return the number of rows in one of the schema tables."""

        if table not in {"opportunities", "submissions", "admins", "audit_log"}:
            raise ValueError(f"Unknown table {table}")
        row = self.execute(f"SELECT COUNT(*) FROM {table}").fetchone()
        return int(row[0]) if row else 0
