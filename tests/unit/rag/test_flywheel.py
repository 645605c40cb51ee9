"""Tests for flywheel persistence of web sources."""

from __future__ import annotations

import threading

from dealflow.rag.flywheel import (
    WEB_DOCUMENT_KIND,
    FlywheelPersister,
    build_web_records,
    persist_web_sources,
)
from dealflow.rag.models import Origin, Source


class RecordingIndex:
    def __init__(self, failures: int = 0, gate: threading.Event | None = None):
        self.failures = failures
        self.gate = gate
        self.calls = 0
        self.writes: list[tuple[str, list]] = []

    def search(self, namespace, query_text, top_k, filter=None):
        return []

    def upsert(self, namespace, records):
        if self.gate is not None:
            self.gate.wait(timeout=5)
        self.calls += 1
        if self.calls <= self.failures:
            raise ConnectionError("index unavailable")
        self.writes.append((namespace, list(records)))
        return len(records)


def _web(n: int, content: str = "body") -> Source:
    return Source(
        id=f"exa-{n}",
        origin=Origin.WEB,
        source_kind="news",
        title=f"Article {n}",
        content=content,
        url=f"https://news.example.com/{n}",
    )


def _internal() -> Source:
    return Source(id="n1", origin=Origin.INTERNAL, source_kind="note", title="Note", content="x")


# ------------------------------------------------------------------
# Records
# ------------------------------------------------------------------


def test_build_web_records_first_three_only():
    records = build_web_records("u1", [_web(n) for n in range(5)], company_id="c1", founder_id="f1")
    assert [r.external_id for r in records] == [
        "https://news.example.com/0",
        "https://news.example.com/1",
        "https://news.example.com/2",
    ]
    record = records[0]
    assert record.owner_id == "u1"
    assert record.company_id == "c1"
    assert record.founder_id == "f1"
    assert record.source_kind == WEB_DOCUMENT_KIND
    assert record.url == record.external_id
    assert record.id.startswith("web_")
    assert record.created_at


def test_build_web_records_fresh_ids():
    first = build_web_records("u1", [_web(1)])
    second = build_web_records("u1", [_web(1)])
    assert first[0].id != second[0].id


def test_build_web_records_skips_internal_and_empty():
    records = build_web_records("u1", [_internal(), _web(1, content=""), _web(2)])
    assert [r.external_id for r in records] == ["https://news.example.com/2"]


def test_build_web_records_caps_before_skipping_empty():
    sources = [_web(0, content="")] + [_web(n) for n in range(1, 5)]
    records = build_web_records("u1", sources)
    assert [r.external_id for r in records] == [
        "https://news.example.com/1",
        "https://news.example.com/2",
    ]


def test_persist_web_sources_writes_to_user_namespace():
    index = RecordingIndex()
    assert persist_web_sources(index, "u1", [_web(1), _web(2)]) == 2
    namespace, records = index.writes[0]
    assert namespace == "user_u1"
    assert len(records) == 2


def test_persist_nothing_skips_index():
    index = RecordingIndex()
    assert persist_web_sources(index, "u1", [_internal()]) == 0
    assert index.calls == 0


# ------------------------------------------------------------------
# FlywheelPersister
# ------------------------------------------------------------------


def test_persister_writes_in_background():
    index = RecordingIndex()
    persister = FlywheelPersister(index, backoff_seconds=0)
    assert persister.submit("u1", [_web(1)], company_id="c1") is True
    assert persister.drain(timeout=5)
    persister.close()

    stats = persister.stats()
    assert stats.enqueued == 1
    assert stats.persisted == 1
    assert stats.pending == 0
    assert index.writes[0][1][0].company_id == "c1"


def test_persister_retries_then_succeeds():
    index = RecordingIndex(failures=2)
    persister = FlywheelPersister(index, max_attempts=3, backoff_seconds=0)
    persister.submit("u1", [_web(1)])
    persister.drain(timeout=5)
    persister.close()

    assert index.calls == 3
    assert persister.stats().persisted == 1
    assert persister.stats().failed == 0


def test_persister_gives_up_after_max_attempts():
    index = RecordingIndex(failures=10)
    persister = FlywheelPersister(index, max_attempts=2, backoff_seconds=0)
    persister.submit("u1", [_web(1)])
    persister.drain(timeout=5)
    persister.close()

    assert index.calls == 2
    assert persister.stats().failed == 1
    assert index.writes == []


def test_full_queue_drops_without_blocking():
    gate = threading.Event()
    index = RecordingIndex(gate=gate)
    persister = FlywheelPersister(index, queue_size=1, backoff_seconds=0)
    try:
        results = [persister.submit("u1", [_web(n)]) for n in range(5)]
    finally:
        gate.set()
    persister.drain(timeout=5)
    persister.close()

    stats = persister.stats()
    assert results.count(False) == stats.dropped
    assert stats.dropped >= 3
    assert stats.enqueued + stats.dropped == 5


def test_submit_without_web_sources_is_ignored():
    persister = FlywheelPersister(RecordingIndex())
    assert persister.submit("u1", [_internal()]) is False
    persister.close()
    assert persister.stats().enqueued == 0


def test_submit_after_close_is_dropped():
    persister = FlywheelPersister(RecordingIndex())
    persister.close()
    assert persister.submit("u1", [_web(1)]) is False
    assert persister.stats().dropped == 1
