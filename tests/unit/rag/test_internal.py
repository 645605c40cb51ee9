"""Tests for internal retrieval (scoping, rerank, failure policy)."""

from __future__ import annotations

from dealflow.rag.index import IndexHit, IndexNotFoundError
from dealflow.rag.internal import build_scope_filter, retrieve_internal
from dealflow.rag.models import Origin


class FakeIndex:
    def __init__(self, hits=None, error: Exception | None = None):
        self.hits = hits or []
        self.error = error
        self.calls: list[dict] = []

    def search(self, namespace, query_text, top_k, filter=None):
        self.calls.append(
            {"namespace": namespace, "query": query_text, "top_k": top_k, "filter": filter}
        )
        if self.error:
            raise self.error
        return self.hits

    def upsert(self, namespace, records):
        return 0


class FakeReranker:
    def __init__(self, order=None, error: Exception | None = None):
        self.order = order or []
        self.error = error

    def rerank(self, query, documents, top_n):
        if self.error:
            raise self.error
        return [(i, 1.0 - n / 10) for n, i in enumerate(self.order)][:top_n]


def _hit(n: int, company_id: str | None = None, founder_id: str | None = None) -> IndexHit:
    return IndexHit(
        id=f"doc-{n}",
        content=f"content {n}",
        title=f"Doc {n}",
        company_id=company_id,
        founder_id=founder_id,
        score=1.0 - n / 100,
    )


# ------------------------------------------------------------------
# Scope
# ------------------------------------------------------------------


def test_scope_filter_owner_always():
    assert build_scope_filter("u1") == {"owner_id": "u1"}
    assert build_scope_filter("u1", company_id="c1", founder_id="f1") == {
        "owner_id": "u1",
        "company_id": "c1",
        "founder_id": "f1",
    }


def test_search_uses_user_namespace_filter_and_overfetch():
    index = FakeIndex([_hit(1)])
    retrieve_internal(index, "u1", "q", company_id="c1", top_k=5)
    call = index.calls[0]
    assert call["namespace"] == "user_u1"
    assert call["filter"] == {"owner_id": "u1", "company_id": "c1"}
    assert call["top_k"] == 10


def test_out_of_scope_hits_dropped():
    index = FakeIndex([_hit(1, company_id="c1"), _hit(2, company_id="other"), _hit(3, company_id="c1")])
    sources = retrieve_internal(index, "u1", "q", company_id="c1")
    assert [s.id for s in sources] == ["doc-1", "doc-3"]


def test_hits_become_internal_sources():
    index = FakeIndex([IndexHit(id="d", content="", source_kind="", title="")])
    [source] = retrieve_internal(index, "u1", "q")
    assert source.origin is Origin.INTERNAL
    assert source.source_kind == "note"
    assert source.title == "Untitled"
    assert source.url is None


# ------------------------------------------------------------------
# Failure policy
# ------------------------------------------------------------------


def test_missing_index_returns_empty():
    assert retrieve_internal(FakeIndex(error=IndexNotFoundError("nope")), "u1", "q") == []


def test_unreachable_index_returns_empty():
    assert retrieve_internal(FakeIndex(error=ConnectionError("down")), "u1", "q") == []


def test_malformed_response_returns_empty():
    index = FakeIndex()
    index.hits = {"matches": []}
    assert retrieve_internal(index, "u1", "q") == []


def test_non_hit_items_ignored():
    index = FakeIndex([_hit(1), {"id": "raw"}, None])
    assert [s.id for s in retrieve_internal(index, "u1", "q")] == ["doc-1"]


# ------------------------------------------------------------------
# Rerank
# ------------------------------------------------------------------


def test_without_reranker_keeps_index_order_truncated():
    index = FakeIndex([_hit(n) for n in range(10)])
    sources = retrieve_internal(index, "u1", "q", top_k=3)
    assert [s.id for s in sources] == ["doc-0", "doc-1", "doc-2"]


def test_reranker_reorders():
    index = FakeIndex([_hit(n) for n in range(4)])
    sources = retrieve_internal(index, "u1", "q", top_k=2, reranker=FakeReranker(order=[3, 1, 0]))
    assert [s.id for s in sources] == ["doc-3", "doc-1"]
    assert sources[0].score == 1.0


def test_reranker_failure_falls_back_to_index_order():
    index = FakeIndex([_hit(n) for n in range(5)])
    sources = retrieve_internal(
        index, "u1", "q", top_k=2, reranker=FakeReranker(error=RuntimeError("rerank down"))
    )
    assert [s.id for s in sources] == ["doc-0", "doc-1"]


def test_reranker_bad_indices_ignored():
    index = FakeIndex([_hit(0), _hit(1)])
    sources = retrieve_internal(index, "u1", "q", reranker=FakeReranker(order=[7, 1, 1, 0]))
    assert [s.id for s in sources] == ["doc-1", "doc-0"]
