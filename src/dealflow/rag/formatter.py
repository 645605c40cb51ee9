"""Citation assignment and context-block rendering.

Keys S1..Sn are assigned internal-first, then external, 1-based and
contiguous. Each source contributes one citation line:

    S1: [INTERNAL/note] Intro call notes (2024-01-15)
    S3: [WEB/news] Acme raises seed (2024-03-02) - https://techcrunch.com/...

and one context block ``[S#] <content, truncated with '...'>``.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from types import MappingProxyType

from dealflow.rag.models import SNIPPET_CHARS, ContextPack, Origin, Source

CONTINUATION_MARKER = "..."

CITATION_RULES = """CITATION RULES:
- Use ONLY the provided sources to answer questions.
- Every factual claim MUST include a citation [S#] (e.g., [S1], [S2]).
- If information is not in the sources, say "I couldn't find information about this in the available sources."
- Never make up facts or URLs.
- At the end of your response, list the sources you cited.

OUTPUT FORMAT:
1. Answer with inline citations [S#]
2. Sources section listing cited sources"""


def citation_system_prompt() -> str:
    """Return the fixed citation rules to prepend to the LLM system prompt."""
    return CITATION_RULES


def truncate(content: str, limit: int = SNIPPET_CHARS) -> str:
    """Return *content* cut to *limit* chars, with CONTINUATION_MARKER if cut."""
    if len(content) <= limit:
        return content
    return content[:limit] + CONTINUATION_MARKER


def display_date(value: str | None) -> str:
    """Render an ISO timestamp as YYYY-MM-DD; unparseable values pass through."""
    if not value:
        return ""
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00")).date().isoformat()
    except ValueError:
        return value


def citation_line(key: str, source: Source) -> str:
    date = display_date(source.date)
    line = f"{key}: [{source.origin.value}/{source.source_kind}] {source.title}"
    if date:
        line += f" ({date})"
    if source.origin is Origin.WEB and source.url:
        line += f" - {source.url}"
    return line


def format_context(
    internal: Sequence[Source],
    external: Sequence[Source],
    snippet_chars: int = SNIPPET_CHARS,
) -> ContextPack:
    """Assign citation keys and render the citation list and context text."""
    citation_map: dict[str, Source] = {}
    citation_lines: list[str] = []
    context_blocks: list[str] = []

    for position, source in enumerate([*internal, *external], start=1):
        key = f"S{position}"
        citation_map[key] = source
        citation_lines.append(citation_line(key, source))
        context_blocks.append(f"[{key}] {truncate(source.content, snippet_chars)}")

    return ContextPack(
        internal_sources=tuple(internal),
        external_sources=tuple(external),
        citation_map=MappingProxyType(citation_map),
        citation_list="\n".join(citation_lines),
        context_text="\n\n".join(context_blocks),
    )
