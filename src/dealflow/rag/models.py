"""Domain models for the retrieval core: Source and ContextPack."""

from __future__ import annotations

import enum
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

SNIPPET_CHARS = 500


class Origin(str, enum.Enum):
    """Where a Source came from."""

    INTERNAL = "INTERNAL"
    WEB = "WEB"


@dataclass(frozen=True)
class Source:
    """A retrieved unit of knowledge with provenance.

    Attributes:
        id: Opaque identifier, unique within one retrieval batch.
        origin: INTERNAL (semantic index) or WEB (live search).
        source_kind: Free-form display tag (note, funding, linkedin, web_page, ...).
        title: Display title.
        content: Body excerpt.
        url: Set for WEB sources only.
        date: ISO timestamp used for display, never for ranking.
        company_id: Optional company scope.
        founder_id: Optional founder scope.
        score: Relevance/rerank score. Metadata only, not used for inclusion.
        author: Web author, when the search provider reports one.
    """

    id: str
    origin: Origin
    source_kind: str
    title: str
    content: str
    url: str | None = None
    date: str | None = None
    company_id: str | None = None
    founder_id: str | None = None
    score: float | None = None
    author: str | None = None


@dataclass(frozen=True)
class ContextPack:
    """Citation-indexed result of one retrieval call. Immutable once built."""

    internal_sources: tuple[Source, ...] = ()
    external_sources: tuple[Source, ...] = ()
    citation_map: Mapping[str, Source] = field(
        default_factory=lambda: MappingProxyType({})
    )
    citation_list: str = ""
    context_text: str = ""

    @property
    def sources(self) -> tuple[Source, ...]:
        """All sources in citation order (internal first)."""
        return self.internal_sources + self.external_sources

    @property
    def is_empty(self) -> bool:
        return not self.internal_sources and not self.external_sources

    def citation_records(self, snippet_chars: int = SNIPPET_CHARS) -> list[dict]:
        """Return one flat row per cited source, for storing alongside a report."""
        return [
            {
                "citation_key": key,
                "origin": source.origin.value,
                "source_kind": source.source_kind,
                "source_id": source.id,
                "url": source.url,
                "title": source.title,
                "snippet": source.content[:snippet_chars],
            }
            for key, source in self.citation_map.items()
        ]
