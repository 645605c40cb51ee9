"""Per-embedding-model vector tables.

Each embedding model gets its own table so vectors of different dimensions
never mix. Rows are keyed by documents.rowid and hold float32 blobs; distance
is computed with sqlite-vec's scalar vec_distance_cosine() so that scope
filters can be applied exactly in the same query.
"""

from __future__ import annotations

import re
import sqlite3

import sqlite_vec


def model_to_slug(model: str) -> str:
    """Convert a provider/model string to a valid table name suffix.

    Examples:
        "openai/text-embedding-3-small" -> "openai_text_embedding_3_small"
    """
    return re.sub(r"[^a-z0-9]", "_", model.lower())


def vec_table_name(model_slug: str) -> str:
    """Return the full vector table name for a model slug."""
    return f"vec_documents_{model_slug}"


def vec_table_exists(conn: sqlite3.Connection, table: str) -> bool:
    row = conn.execute(
        "SELECT name FROM sqlite_master WHERE type='table' AND name=?", (table,)
    ).fetchone()
    return row is not None


def ensure_vec_table(conn: sqlite3.Connection, model_slug: str) -> str:
    """Create vec_documents_{model_slug} if it doesn't already exist.

    Args:
        conn: Active database connection (sqlite-vec must be loaded).
        model_slug: Sanitized model identifier (use model_to_slug() to generate).

    Returns:
        The table name.
    """
    if not re.fullmatch(r"[a-z0-9_]+", model_slug):
        raise ValueError(
            f"Invalid model_slug '{model_slug}' — use model_to_slug() to sanitize."
        )

    table = vec_table_name(model_slug)
    if not vec_table_exists(conn, table):
        conn.execute(
            f"CREATE TABLE {table} (rowid INTEGER PRIMARY KEY, embedding BLOB NOT NULL)"
        )
        conn.commit()
    return table


def serialize(embedding: list[float]) -> bytes:
    """Pack an embedding as the float32 blob sqlite-vec expects."""
    return sqlite_vec.serialize_float32(embedding)
