"""Forward-only migration runner for the index database schema.

Vector tables (vec_documents_*) are NOT migration-managed — use ensure_vec_table().
"""

from __future__ import annotations

import sqlite3

# schema_version is the bootstrap table, created before migrations run.
_CREATE_SCHEMA_VERSION = """
CREATE TABLE IF NOT EXISTS schema_version (
    version     INTEGER NOT NULL,
    applied_at  DATETIME NOT NULL DEFAULT (datetime('now'))
)
"""

# documents.rowid is the join key into the per-model vector tables.
_V1_SQL = """
CREATE TABLE IF NOT EXISTS documents (
    id              TEXT NOT NULL UNIQUE,
    namespace       TEXT NOT NULL,
    owner_id        TEXT NOT NULL,
    company_id      TEXT,
    founder_id      TEXT,
    source_kind     TEXT NOT NULL DEFAULT 'note',
    title           TEXT NOT NULL DEFAULT '',
    content         TEXT NOT NULL,
    url             TEXT,
    external_id     TEXT,
    created_at      TEXT,
    embedding_model TEXT NOT NULL,
    inserted_at     DATETIME NOT NULL DEFAULT (datetime('now'))
);

CREATE INDEX IF NOT EXISTS idx_documents_scope
    ON documents(namespace, owner_id, company_id, founder_id);

CREATE UNIQUE INDEX IF NOT EXISTS idx_documents_external
    ON documents(namespace, external_id) WHERE external_id IS NOT NULL;
"""

# Append-only. Each entry: (version: int, sql: str).
# executescript() issues an implicit COMMIT before running.
MIGRATIONS: list[tuple[int, str]] = [
    (1, _V1_SQL),
]


def run_migrations(conn: sqlite3.Connection) -> None:
    """Apply all pending migrations in ascending version order.

    Idempotent: safe to call on a database at any version.
    """
    conn.execute(_CREATE_SCHEMA_VERSION)
    conn.commit()

    row = conn.execute("SELECT MAX(version) FROM schema_version").fetchone()
    current = row[0] if row[0] is not None else 0

    for version, sql in MIGRATIONS:
        if version > current:
            conn.executescript(sql)
            conn.execute(
                "INSERT INTO schema_version (version) VALUES (?)", (version,)
            )
            conn.commit()
