"""Semantic index contract, reranker contract, and the local sqlite implementation.

The retrieval core depends only on SemanticIndex and Reranker. Namespaces are
per user (``user_<id>``), so one user's documents can never surface in another
user's retrieval. An index or namespace that does not exist raises
IndexNotFoundError, which callers treat as "no results".

SqliteSemanticIndex stores documents in the local database and embeds with
LiteLLM (same embedding model at write and query time). Re-writing a record
whose (namespace, external_id) already exists refreshes that row in place.
"""

from __future__ import annotations

import sqlite3
import threading
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from dealflow.db.connection import open_index_db
from dealflow.db.models import Document
from dealflow.db.repository import Repository
from dealflow.db.vectors import ensure_vec_table, model_to_slug, vec_table_exists, vec_table_name
from dealflow.rag import llm_client

DEFAULT_EMBEDDING_MODEL = "openai/text-embedding-3-small"
DEFAULT_RERANK_MODEL = "cohere/rerank-english-v3.0"


class IndexNotFoundError(LookupError):
    """Raised when the index or namespace being searched does not exist."""


def user_namespace(user_id: str) -> str:
    return f"user_{user_id}"


@dataclass(frozen=True)
class IndexHit:
    """One ranked search hit as returned by a SemanticIndex."""

    id: str
    content: str
    source_kind: str = "note"
    title: str = ""
    created_at: str | None = None
    company_id: str | None = None
    founder_id: str | None = None
    score: float | None = None


@dataclass(frozen=True)
class IndexRecord:
    """A document to write into a SemanticIndex namespace."""

    id: str
    owner_id: str
    content: str
    source_kind: str = "note"
    title: str = ""
    created_at: str | None = None
    company_id: str | None = None
    founder_id: str | None = None
    url: str | None = None
    external_id: str | None = None


class SemanticIndex(Protocol):
    def search(
        self,
        namespace: str,
        query_text: str,
        top_k: int,
        filter: dict[str, str] | None = None,
    ) -> list[IndexHit]: ...

    def upsert(self, namespace: str, records: Sequence[IndexRecord]) -> int: ...


class Reranker(Protocol):
    def rerank(self, query: str, documents: list[str], top_n: int) -> list[tuple[int, float]]: ...


class LiteLLMReranker:
    """Cross-encoder reranking through litellm.rerank()."""

    def __init__(self, model: str = DEFAULT_RERANK_MODEL) -> None:
        self.model = model

    def rerank(self, query: str, documents: list[str], top_n: int) -> list[tuple[int, float]]:
        return llm_client.rerank(self.model, query, documents, top_n=top_n)


class SqliteSemanticIndex:
    """SemanticIndex backed by the local sqlite + sqlite-vec database.

    Access is serialized with a lock so a background writer (the flywheel
    worker) can share the connection with request threads.

    Args:
        conn: Open connection with schema initialised. Open it with
            ``shared=True`` if it will be used from several threads.
        embedding_model: LiteLLM embedding model used for writes and queries.
        embed_fn: Override for the embedding call (model, text) -> vector.
    """

    def __init__(
        self,
        conn: sqlite3.Connection,
        embedding_model: str = DEFAULT_EMBEDDING_MODEL,
        embed_fn: Callable[[str, str], list[float]] | None = None,
    ) -> None:
        self._conn = conn
        self._repo = Repository(conn)
        self._model = embedding_model
        self._embed = embed_fn or llm_client.embed
        self._lock = threading.RLock()

    @classmethod
    def open(
        cls,
        db_path: Path | str,
        embedding_model: str = DEFAULT_EMBEDDING_MODEL,
    ) -> SqliteSemanticIndex:
        """Open (creating if needed) the database at *db_path* for shared use."""
        return cls(open_index_db(db_path, shared=True), embedding_model)

    @property
    def embedding_model(self) -> str:
        return self._model

    @property
    def vec_table(self) -> str:
        return vec_table_name(model_to_slug(self._model))

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    def search(
        self,
        namespace: str,
        query_text: str,
        top_k: int,
        filter: dict[str, str] | None = None,
    ) -> list[IndexHit]:
        """Return up to *top_k* hits in *namespace* matching *filter*, nearest first.

        Raises:
            IndexNotFoundError: If nothing was ever indexed with this embedding model.
        """
        with self._lock:
            if not vec_table_exists(self._conn, self.vec_table):
                raise IndexNotFoundError(
                    f"No vector index for embedding model '{self._model}'."
                )

        query_embedding = self._embed(self._model, query_text)

        with self._lock:
            rows = self._repo.search_vec(
                self.vec_table,
                query_embedding,
                namespace=namespace,
                filters=filter,
                limit=top_k,
            )

        return [
            IndexHit(
                id=doc.id,
                content=doc.content,
                source_kind=doc.source_kind,
                title=doc.title,
                created_at=doc.created_at,
                company_id=doc.company_id,
                founder_id=doc.founder_id,
                score=1.0 - distance if distance is not None else None,
            )
            for doc, distance in rows
        ]

    def upsert(self, namespace: str, records: Sequence[IndexRecord]) -> int:
        """Embed and store *records*. Returns the number of records written."""
        written = 0
        for record in records:
            embedding = self._embed(self._model, record.content)
            doc = Document(
                id=record.id,
                namespace=namespace,
                owner_id=record.owner_id,
                content=record.content,
                embedding_model=self._model,
                source_kind=record.source_kind,
                title=record.title,
                company_id=record.company_id,
                founder_id=record.founder_id,
                url=record.url,
                external_id=record.external_id,
                created_at=record.created_at,
            )
            with self._lock:
                table = ensure_vec_table(self._conn, model_to_slug(self._model))
                existing = (
                    self._repo.get_by_external_id(namespace, record.external_id)
                    if record.external_id
                    else None
                )
                if existing is not None and existing.rowid is not None:
                    self._repo.refresh_document(existing.rowid, doc)
                    rowid = existing.rowid
                else:
                    rowid = self._repo.add_document(doc)
                self._repo.add_embedding(table, rowid, embedding)
            written += 1
        return written
