"""Repository pattern for all index database operations.

Single interface for: documents, per-model vector rows, filtered vector search.
Vector tables are model-managed (ensure_vec_table); the repository reads and writes them.
"""

from __future__ import annotations

import sqlite3

from dealflow.db.models import Document
from dealflow.db.vectors import serialize

# Columns a search filter may constrain (equality only).
FILTERABLE_COLUMNS: frozenset[str] = frozenset(
    ["owner_id", "company_id", "founder_id", "source_kind"]
)

_DOCUMENT_COLUMNS = (
    "rowid, id, namespace, owner_id, company_id, founder_id, source_kind, title, "
    "content, url, external_id, created_at, embedding_model, inserted_at"
)


class Repository:
    """Data access layer for indexed documents and their embeddings.

    Wraps an open sqlite3.Connection. The connection is owned by the caller
    and must be closed after use.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        """Initialise with an open database connection.

        Args:
            conn: An open sqlite3.Connection with sqlite-vec loaded and schema
                initialised (see dealflow.db.schema.initialize).
        """
        self._conn = conn

    @property
    def conn(self) -> sqlite3.Connection:
        return self._conn

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    def add_document(self, doc: Document) -> int:
        """Insert a document. Returns the new rowid."""
        cur = self._conn.execute(
            """
            INSERT INTO documents (
                id, namespace, owner_id, company_id, founder_id, source_kind,
                title, content, url, external_id, created_at, embedding_model
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                doc.id,
                doc.namespace,
                doc.owner_id,
                doc.company_id,
                doc.founder_id,
                doc.source_kind,
                doc.title,
                doc.content,
                doc.url,
                doc.external_id,
                doc.created_at,
                doc.embedding_model,
            ),
        )
        self._conn.commit()
        return cur.lastrowid

    def refresh_document(self, rowid: int, doc: Document) -> None:
        """Overwrite the mutable fields of an existing row with those of *doc*.

        The row keeps its original id; scope ids are only filled in, never cleared.
        """
        self._conn.execute(
            """
            UPDATE documents SET
                title = ?,
                content = ?,
                url = ?,
                created_at = ?,
                embedding_model = ?,
                company_id = COALESCE(?, company_id),
                founder_id = COALESCE(?, founder_id),
                inserted_at = datetime('now')
            WHERE rowid = ?
            """,
            (
                doc.title,
                doc.content,
                doc.url,
                doc.created_at,
                doc.embedding_model,
                doc.company_id,
                doc.founder_id,
                rowid,
            ),
        )
        self._conn.commit()

    def get_document(self, doc_id: str) -> Document | None:
        row = self._conn.execute(
            f"SELECT {_DOCUMENT_COLUMNS} FROM documents WHERE id = ?", (doc_id,)
        ).fetchone()
        return _row_to_document(row) if row else None

    def get_by_external_id(self, namespace: str, external_id: str) -> Document | None:
        """Return the document persisted under *external_id* in *namespace*, if any."""
        row = self._conn.execute(
            f"SELECT {_DOCUMENT_COLUMNS} FROM documents WHERE namespace = ? AND external_id = ?",
            (namespace, external_id),
        ).fetchone()
        return _row_to_document(row) if row else None

    def count_by_namespace(self) -> list[tuple[str, int]]:
        """Return [(namespace, document_count), ...] ordered by namespace."""
        rows = self._conn.execute(
            "SELECT namespace, COUNT(*) AS n FROM documents GROUP BY namespace ORDER BY namespace"
        ).fetchall()
        return [(r["namespace"], r["n"]) for r in rows]

    def delete_document(self, doc_id: str) -> None:
        """Delete a document and its vectors in every vector table."""
        doc = self.get_document(doc_id)
        if doc is None:
            return
        for table in self.list_vec_tables():
            self._conn.execute(f"DELETE FROM [{table}] WHERE rowid = ?", (doc.rowid,))  # noqa: S608
        self._conn.execute("DELETE FROM documents WHERE rowid = ?", (doc.rowid,))
        self._conn.commit()

    # ------------------------------------------------------------------
    # Vectors
    # ------------------------------------------------------------------

    def add_embedding(self, table: str, rowid: int, embedding: list[float]) -> None:
        """Insert or replace the vector stored for document *rowid*."""
        self._conn.execute(
            f"INSERT OR REPLACE INTO {table}(rowid, embedding) VALUES (?, ?)",
            (rowid, serialize(embedding)),
        )
        self._conn.commit()

    def list_vec_tables(self) -> list[str]:
        return [
            r[0]
            for r in self._conn.execute(
                "SELECT name FROM sqlite_master WHERE type='table' AND name LIKE 'vec_documents_%' ORDER BY name"
            ).fetchall()
        ]

    def search_vec(
        self,
        table: str,
        embedding: list[float],
        namespace: str,
        filters: dict[str, str] | None = None,
        limit: int = 10,
    ) -> list[tuple[Document, float]]:
        """Cosine nearest-neighbour search scoped to *namespace* and *filters*.

        Returns (document, distance) sorted by ascending distance.

        Raises:
            ValueError: If a filter names a column outside FILTERABLE_COLUMNS.
        """
        clauses = ["d.namespace = ?"]
        params: list[object] = [serialize(embedding), namespace]
        for column, value in (filters or {}).items():
            if column not in FILTERABLE_COLUMNS:
                raise ValueError(f"Unsupported filter field '{column}'.")
            clauses.append(f"d.{column} = ?")
            params.append(value)
        params.append(limit)

        columns = ", ".join(f"d.{c.strip()}" for c in _DOCUMENT_COLUMNS.split(","))
        rows = self._conn.execute(
            f"""
            SELECT {columns}, vec_distance_cosine(v.embedding, ?) AS distance
            FROM documents d JOIN {table} v ON v.rowid = d.rowid
            WHERE {' AND '.join(clauses)}
            ORDER BY distance
            LIMIT ?
            """,  # noqa: S608
            params,
        ).fetchall()
        return [(_row_to_document(r), r["distance"]) for r in rows]


# ------------------------------------------------------------------
# Row → model helpers
# ------------------------------------------------------------------

def _row_to_document(row: sqlite3.Row) -> Document:
    return Document(
        rowid=row["rowid"],
        id=row["id"],
        namespace=row["namespace"],
        owner_id=row["owner_id"],
        company_id=row["company_id"],
        founder_id=row["founder_id"],
        source_kind=row["source_kind"],
        title=row["title"],
        content=row["content"],
        url=row["url"],
        external_id=row["external_id"],
        created_at=row["created_at"],
        embedding_model=row["embedding_model"],
        inserted_at=row["inserted_at"],
    )
