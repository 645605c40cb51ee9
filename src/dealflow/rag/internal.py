"""Internal retrieval: scoped semantic search over the user's own index.

  1. Filter: owner_id = user (always), company_id / founder_id when given.
  2. Over-fetch OVERFETCH_FACTOR × top_k candidates from the index.
  3. Rerank on the content field down to top_k (index order if no reranker
     is configured or the reranker fails).
  4. Map hits to INTERNAL Sources.

Internal retrieval is best-effort: any index failure yields [] so the
assistant still works without internal context.
"""

from __future__ import annotations

import logging

from dealflow.rag.index import IndexHit, IndexNotFoundError, Reranker, SemanticIndex, user_namespace
from dealflow.rag.models import Origin, Source

logger = logging.getLogger(__name__)

DEFAULT_TOP_K = 15
OVERFETCH_FACTOR = 2


def build_scope_filter(
    user_id: str,
    company_id: str | None = None,
    founder_id: str | None = None,
) -> dict[str, str]:
    scope = {"owner_id": user_id}
    if company_id:
        scope["company_id"] = company_id
    if founder_id:
        scope["founder_id"] = founder_id
    return scope


def retrieve_internal(
    index: SemanticIndex,
    user_id: str,
    query: str,
    company_id: str | None = None,
    founder_id: str | None = None,
    top_k: int = DEFAULT_TOP_K,
    reranker: Reranker | None = None,
) -> list[Source]:
    """Return up to *top_k* INTERNAL sources for *query*, best-first. Never raises."""
    scope = build_scope_filter(user_id, company_id, founder_id)

    try:
        hits = index.search(
            user_namespace(user_id),
            query,
            top_k=top_k * OVERFETCH_FACTOR,
            filter=scope,
        )
    except IndexNotFoundError:
        logger.info("Semantic index not found; skipping internal retrieval")
        return []
    except Exception as exc:
        logger.warning("Internal retrieval failed (non-fatal): %s", exc)
        return []

    if not isinstance(hits, list):
        logger.warning("Semantic index returned %s instead of a list; ignoring", type(hits).__name__)
        return []

    in_scope = [h for h in hits if isinstance(h, IndexHit) and _matches_scope(h, company_id, founder_id)]
    dropped = len(hits) - len(in_scope)
    if dropped:
        logger.debug("Dropped %d out-of-scope internal hits", dropped)

    ranked = _rerank(query, in_scope, top_k, reranker)
    return [_hit_to_source(hit, score) for hit, score in ranked]


def _matches_scope(hit: IndexHit, company_id: str | None, founder_id: str | None) -> bool:
    if company_id and hit.company_id != company_id:
        return False
    if founder_id and hit.founder_id != founder_id:
        return False
    return True


def _rerank(
    query: str,
    hits: list[IndexHit],
    top_k: int,
    reranker: Reranker | None,
) -> list[tuple[IndexHit, float | None]]:
    """Order *hits* with *reranker*; fall back to index order on any failure."""
    fallback = [(hit, hit.score) for hit in hits[:top_k]]
    if reranker is None or not hits:
        return fallback

    try:
        ranked = reranker.rerank(query, [hit.content for hit in hits], top_n=top_k)
    except Exception as exc:
        logger.warning("Rerank failed, keeping index order: %s", exc)
        return fallback

    result: list[tuple[IndexHit, float | None]] = []
    seen: set[int] = set()
    for position, score in ranked:
        if 0 <= position < len(hits) and position not in seen:
            seen.add(position)
            result.append((hits[position], score))
    return result[:top_k]


def _hit_to_source(hit: IndexHit, score: float | None) -> Source:
    return Source(
        id=hit.id,
        origin=Origin.INTERNAL,
        source_kind=hit.source_kind or "note",
        title=hit.title or "Untitled",
        content=hit.content or "",
        date=hit.created_at,
        company_id=hit.company_id,
        founder_id=hit.founder_id,
        score=score,
    )
