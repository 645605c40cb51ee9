"""Row models for the index database layer."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class Document:
    id: str
    namespace: str
    owner_id: str
    content: str
    embedding_model: str
    source_kind: str = "note"
    title: str = ""
    company_id: str | None = None
    founder_id: str | None = None
    url: str | None = None
    external_id: str | None = None
    created_at: str | None = None
    inserted_at: str | None = None
    rowid: int | None = None  # set after insert; None for unsaved documents
