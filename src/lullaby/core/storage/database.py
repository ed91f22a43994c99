"""SQLite storage for logged infant-care records.

Owns the single connection, the schema and its version row, and a
``transaction()`` helper the repository writes through.
"""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

logger = logging.getLogger(__name__)

MEMORY = ":memory:"

SCHEMA_VERSION = 1

# ---------------------------------------------------------------------------
# Schema DDL
# ---------------------------------------------------------------------------

_SCHEMA_V1 = """
CREATE TABLE IF NOT EXISTS babies (
    id          TEXT PRIMARY KEY,
    name_enc    TEXT,
    birth_date  TEXT,
    created_at  TEXT NOT NULL DEFAULT (datetime('now'))
);

-- One row per sleep session, feeding or generic activity
CREATE TABLE IF NOT EXISTS activity_records (
    id             TEXT PRIMARY KEY,
    baby_id        TEXT NOT NULL,
    kind           TEXT NOT NULL,
    activity_type  TEXT,
    start_time     TEXT NOT NULL,
    end_time       TEXT,
    -- Unix seconds of start_time, for range queries
    start_epoch    REAL NOT NULL,

    -- Encrypted JSON blob (quality, environment, interruptions, notes...)
    metadata_enc   TEXT,

    created_at     TEXT NOT NULL DEFAULT (datetime('now'))
);

CREATE TABLE IF NOT EXISTS schema_version (
    version    INTEGER NOT NULL,
    applied_at TEXT NOT NULL DEFAULT (datetime('now'))
);

CREATE INDEX IF NOT EXISTS idx_records_baby_kind ON activity_records(baby_id, kind);
CREATE INDEX IF NOT EXISTS idx_records_start     ON activity_records(start_epoch);
"""


class DatabaseError(Exception):
    """Raised when the record database cannot be opened or used."""


class RecordDatabase:
    """Connection owner for the record store.

    ``":memory:"`` gives a throwaway database (tests, servers without an
    encryption key). A file path is expanded and its parent directory created.

    Usage::

        with RecordDatabase("~/.lullaby/records.db") as db:
            with db.transaction() as conn:
                conn.execute(...)
    """

    def __init__(self, db_path: str = MEMORY) -> None:
        self._db_path = db_path
        self._conn: sqlite3.Connection | None = None

    @property
    def connection(self) -> sqlite3.Connection:
        if self._conn is None:
            raise DatabaseError("Database not initialized. Call initialize() first.")
        return self._conn

    def initialize(self) -> None:
        """Open the connection and bring the schema to ``SCHEMA_VERSION``. Idempotent."""
        if self._conn is not None:
            return

        try:
            self._conn = self._connect()
        except (OSError, sqlite3.Error) as exc:
            raise DatabaseError(f"Cannot open database {self._db_path}: {exc}") from exc

        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA foreign_keys=ON")
        self._migrate()
        logger.info("Record database ready: %s (schema v%d)", self._db_path, SCHEMA_VERSION)

    def _connect(self) -> sqlite3.Connection:
        if self._db_path == MEMORY:
            return sqlite3.connect(MEMORY)
        path = Path(self._db_path).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        return sqlite3.connect(str(path))

    def _migrate(self) -> None:
        self.connection.executescript(_SCHEMA_V1)
        found = self.get_schema_version()
        if found >= SCHEMA_VERSION:
            return
        with self.transaction() as conn:
            conn.execute("INSERT INTO schema_version (version) VALUES (?)", (SCHEMA_VERSION,))
        logger.info("Schema migrated from v%d to v%d", found, SCHEMA_VERSION)

    def get_schema_version(self) -> int:
        row = self.connection.execute("SELECT MAX(version) FROM schema_version").fetchone()
        return row[0] or 0

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Commit on success, roll back and re-raise on any error."""
        conn = self.connection
        try:
            yield conn
        except BaseException:
            conn.rollback()
            raise
        else:
            conn.commit()

    def close(self) -> None:
        if self._conn is None:
            return
        self._conn.close()
        self._conn = None
        logger.info("Record database closed: %s", self._db_path)

    def __enter__(self) -> RecordDatabase:
        self.initialize()
        return self

    def __exit__(self, *args) -> None:
        self.close()
