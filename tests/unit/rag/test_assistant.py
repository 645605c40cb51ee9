"""Tests for the citation-grounded assistant."""

from __future__ import annotations

from unittest.mock import patch

import pytest

from dealflow.config import AssistantCfg
from dealflow.rag.assistant import NO_SOURCES_NOTE, Assistant, build_system_prompt
from dealflow.rag.formatter import CITATION_RULES, format_context
from dealflow.rag.models import ContextPack, Origin, Source
from dealflow.rag.sessions import SessionStore

NOTE = Source(
    id="n1",
    origin=Origin.INTERNAL,
    source_kind="note",
    title="Intro call",
    content="Acme sells routing software.",
    date="2024-01-15T10:00:00",
)


class FakeBuilder:
    def __init__(self, pack: ContextPack) -> None:
        self.pack = pack
        self.calls: list[tuple[tuple, dict]] = []

    def build(self, *args, **kwargs) -> ContextPack:
        self.calls.append((args, kwargs))
        return self.pack


@pytest.fixture
def pack() -> ContextPack:
    return format_context([NOTE], [])


def test_system_prompt_contains_rules_sources_and_context(pack):
    prompt = build_system_prompt(pack)
    assert CITATION_RULES in prompt
    assert "SOURCES:\nS1: [INTERNAL/note] Intro call (2024-01-15)" in prompt
    assert "CONTEXT:\n[S1] Acme sells routing software." in prompt


def test_system_prompt_for_empty_pack():
    prompt = build_system_prompt(ContextPack())
    assert f"SOURCES:\n{NO_SOURCES_NOTE}" in prompt
    assert f"CONTEXT:\n{NO_SOURCES_NOTE}" in prompt


def test_ask_forwards_entity_and_calls_llm(pack):
    builder = FakeBuilder(pack)
    assistant = Assistant(builder, SessionStore(), AssistantCfg(model="openai/gpt-4o-mini", max_tokens=300))

    with patch("dealflow.rag.assistant.llm_client.complete", return_value="Routing [S1]") as mock_complete:
        reply = assistant.ask("u1", "t1", "What does Acme do?", company_id="c1", company_name="Acme")

    assert reply.content == "Routing [S1]"
    assert reply.pack is pack
    assert builder.calls == [(("u1", "What does Acme do?"), {"company_id": "c1", "company_name": "Acme"})]

    model, messages = mock_complete.call_args.args
    assert model == "openai/gpt-4o-mini"
    assert mock_complete.call_args.kwargs["max_tokens"] == 300
    assert messages[0]["role"] == "system"
    assert messages[-1] == {"role": "user", "content": "What does Acme do?"}


def test_history_replayed_on_next_turn(pack):
    sessions = SessionStore()
    assistant = Assistant(FakeBuilder(pack), sessions)

    with patch("dealflow.rag.assistant.llm_client.complete", side_effect=["first", "second"]) as mock_complete:
        assistant.ask("u1", "t1", "one")
        assistant.ask("u1", "t1", "two")

    _, messages = mock_complete.call_args.args
    assert [m["content"] for m in messages[1:]] == ["one", "first", "two"]
    assert len(sessions.get("u1", "t1")) == 4


def test_llm_failure_propagates_and_stores_nothing(pack):
    sessions = SessionStore()
    assistant = Assistant(FakeBuilder(pack), sessions)

    with patch("dealflow.rag.assistant.llm_client.complete", side_effect=RuntimeError("rate limited")):
        with pytest.raises(RuntimeError, match="rate limited"):
            assistant.ask("u1", "t1", "hello")

    assert sessions.get("u1", "t1") == []
