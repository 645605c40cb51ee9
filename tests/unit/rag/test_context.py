"""Tests for ContextBuilder orchestration."""

from __future__ import annotations

from unittest.mock import MagicMock

from dealflow.config import RetrievalCfg, WebSearchCfg
from dealflow.rag.context import ContextBuilder
from dealflow.rag.index import IndexHit
from dealflow.rag.models import ContextPack, Origin
from dealflow.rag.websearch import WebResult


class FakeIndex:
    def __init__(self, hits=None, error=None):
        self.hits = hits or []
        self.error = error

    def search(self, namespace, query_text, top_k, filter=None):
        if self.error:
            raise self.error
        return self.hits

    def upsert(self, namespace, records):
        return len(records)


class FakeWeb:
    def __init__(self, results=None, error=None):
        self.results = results or []
        self.error = error
        self.queries: list[str] = []

    def search(self, query, num_results, text_max_chars, highlight_sentences):
        self.queries.append(query)
        if self.error:
            raise self.error
        return list(self.results)


def _hits(n: int) -> list[IndexHit]:
    return [IndexHit(id=f"doc-{i}", content=f"note {i}", title=f"Note {i}") for i in range(n)]


ACME_RESULT = WebResult(id="w", url="https://acme.io/pricing", title="Acme pricing", text="Plans from $10.")


def test_internal_only_when_not_triggered():
    web = FakeWeb([ACME_RESULT])
    builder = ContextBuilder(FakeIndex(_hits(10)), web)
    pack = builder.build("u1", "ok thanks", company_name="Acme", company_website="acme.io")
    assert len(pack.internal_sources) == 10
    assert pack.external_sources == ()
    assert web.queries == []


def test_trigger_adds_web_sources_after_internal():
    builder = ContextBuilder(FakeIndex(_hits(2)), FakeWeb([ACME_RESULT]))
    pack = builder.build("u1", "What's their pricing?", company_name="Acme", company_website="acme.io")
    assert [s.origin for s in pack.sources] == [Origin.INTERNAL, Origin.INTERNAL, Origin.WEB]
    assert pack.citation_map["S3"].url == "https://acme.io/pricing"


def test_few_internal_sources_trigger_web():
    web = FakeWeb([ACME_RESULT])
    builder = ContextBuilder(FakeIndex(_hits(2)), web)
    builder.build("u1", "ok thanks", company_name="Acme")
    assert web.queries


def test_no_entity_name_skips_web():
    web = FakeWeb([ACME_RESULT])
    pack = ContextBuilder(FakeIndex(), web).build("u1", "What's their pricing?")
    assert web.queries == []
    assert pack.is_empty


def test_include_web_search_false_skips_web():
    web = FakeWeb([ACME_RESULT])
    ContextBuilder(FakeIndex(), web).build(
        "u1", "pricing?", company_name="Acme", include_web_search=False
    )
    assert web.queries == []


def test_disabled_in_config_skips_web():
    web = FakeWeb([ACME_RESULT])
    ContextBuilder(FakeIndex(), web, web=WebSearchCfg(enabled=False)).build(
        "u1", "pricing?", company_name="Acme"
    )
    assert web.queries == []


def test_no_web_client_is_internal_only():
    pack = ContextBuilder(FakeIndex(_hits(1)), None).build("u1", "pricing?", company_name="Acme")
    assert len(pack.internal_sources) == 1


def test_never_raises_when_everything_fails():
    builder = ContextBuilder(
        FakeIndex(error=RuntimeError("index down")),
        FakeWeb(error=RuntimeError("web down")),
    )
    pack = builder.build("u1", "What's their pricing?", company_name="Acme")
    assert isinstance(pack, ContextPack)
    assert pack.is_empty


def test_retrieval_settings_applied():
    builder = ContextBuilder(
        FakeIndex(_hits(10)),
        None,
        retrieval=RetrievalCfg(top_k=3, snippet_chars=4),
    )
    pack = builder.build("u1", "anything")
    assert len(pack.internal_sources) == 3
    assert pack.context_text.startswith("[S1] note...")


def test_web_sources_handed_to_persister():
    persister = MagicMock()
    builder = ContextBuilder(FakeIndex(), FakeWeb([ACME_RESULT]), persister=persister)
    pack = builder.build(
        "u1", "pricing?", company_id="c1", company_name="Acme", company_website="acme.io", founder_id="f1"
    )
    persister.submit.assert_called_once_with(
        "u1", [pack.external_sources[0]], company_id="c1", founder_id="f1"
    )


def test_persister_failure_does_not_break_build():
    persister = MagicMock()
    persister.submit.side_effect = RuntimeError("queue broken")
    builder = ContextBuilder(FakeIndex(), FakeWeb([ACME_RESULT]), persister=persister)
    pack = builder.build("u1", "pricing?", company_name="Acme", company_website="acme.io")
    assert len(pack.external_sources) == 1


def test_persister_not_called_without_web_sources():
    persister = MagicMock()
    ContextBuilder(FakeIndex(_hits(10)), None, persister=persister).build("u1", "ok thanks")
    persister.submit.assert_not_called()
