"""SQLite access for the dealflow index.

Every connection loads sqlite-vec (for ``vec_distance_cosine``), returns
rows as ``sqlite3.Row`` and runs in WAL mode so the CLI can read while the
flywheel writer thread commits. ``busy_timeout`` makes a second process
wait for a write lock instead of failing at once.
"""

from __future__ import annotations

import sqlite3
from pathlib import Path

import sqlite_vec

DEFAULT_DB_NAME = ".dealflow.db"
BUSY_TIMEOUT_MS = 5_000

_PRAGMAS = (
    "PRAGMA foreign_keys = ON",
    "PRAGMA journal_mode = WAL",
    f"PRAGMA busy_timeout = {BUSY_TIMEOUT_MS}",
)


class Database:
    """Handle on one index file; ``connect()`` may be called repeatedly."""

    def __init__(self, db_path: Path | str = DEFAULT_DB_NAME) -> None:
        self.db_path = Path(db_path)
        self._conn: sqlite3.Connection | None = None

    def connect(self, *, shared: bool = False) -> sqlite3.Connection:
        """Open a configured connection.

        Args:
            shared: The connection will be used from more than one thread
                (the flywheel writer). The caller serializes access.
        """
        conn = sqlite3.connect(self.db_path, check_same_thread=not shared)
        conn.row_factory = sqlite3.Row
        conn.enable_load_extension(True)
        sqlite_vec.load(conn)
        conn.enable_load_extension(False)
        for pragma in _PRAGMAS:
            conn.execute(pragma)
        return conn

    def __enter__(self) -> sqlite3.Connection:
        self._conn = self.connect()
        return self._conn

    def __exit__(self, *args: object) -> None:
        if self._conn:
            self._conn.close()
            self._conn = None


def open_index_db(db_path: Path | str, *, shared: bool = False) -> sqlite3.Connection:
    """Connect and bring the schema up to date (migrations are idempotent)."""
    from dealflow.db.schema import initialize

    conn = Database(db_path).connect(shared=shared)
    initialize(conn)
    return conn
