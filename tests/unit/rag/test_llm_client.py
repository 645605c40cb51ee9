"""Tests for the LiteLLM client wrapper."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

from dealflow.rag.llm_client import complete, embed, provider_of, rerank, validate_api_key


# ------------------------------------------------------------------
# validate_api_key
# ------------------------------------------------------------------


def test_provider_of():
    assert provider_of("anthropic/claude-3-5-sonnet-20241022") == "anthropic"
    assert provider_of("Cohere/rerank-english-v3.0") == "cohere"
    assert provider_of("gpt-4o") == "openai"


def test_validate_api_key_raises_if_missing(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    with pytest.raises(EnvironmentError, match="OPENAI_API_KEY"):
        validate_api_key("openai/gpt-4o")


def test_validate_api_key_passes_if_set(monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test-key")
    validate_api_key("openai/gpt-4o")


def test_validate_api_key_cohere(monkeypatch):
    monkeypatch.delenv("COHERE_API_KEY", raising=False)
    with pytest.raises(EnvironmentError, match="COHERE_API_KEY"):
        validate_api_key("cohere/rerank-english-v3.0")


def test_validate_api_key_ollama_no_key_required():
    validate_api_key("ollama/llama3")


# ------------------------------------------------------------------
# complete()
# ------------------------------------------------------------------


def test_complete_returns_content():
    mock_response = MagicMock()
    mock_response.choices[0].message.content = "Acme is a routing startup [S1]."

    with patch("dealflow.rag.llm_client.litellm.completion", return_value=mock_response):
        result = complete("openai/gpt-4o", [{"role": "user", "content": "Hi"}])

    assert result == "Acme is a routing startup [S1]."


def test_complete_returns_empty_string_on_none_content():
    mock_response = MagicMock()
    mock_response.choices[0].message.content = None

    with patch("dealflow.rag.llm_client.litellm.completion", return_value=mock_response):
        assert complete("openai/gpt-4o", [{"role": "user", "content": "Hi"}]) == ""


def test_complete_passes_params_to_litellm():
    mock_response = MagicMock()
    mock_response.choices[0].message.content = "ok"

    with patch("dealflow.rag.llm_client.litellm.completion", return_value=mock_response) as mock_c:
        complete(
            "openai/gpt-4o-mini",
            [{"role": "user", "content": "test"}],
            max_tokens=512,
            temperature=0.7,
            num_retries=2,
        )

    call_kwargs = mock_c.call_args.kwargs
    assert call_kwargs["model"] == "openai/gpt-4o-mini"
    assert call_kwargs["max_tokens"] == 512
    assert call_kwargs["temperature"] == 0.7
    assert call_kwargs["num_retries"] == 2


# ------------------------------------------------------------------
# embed()
# ------------------------------------------------------------------


def test_embed_returns_vector():
    mock_response = MagicMock()
    mock_response.data = [{"embedding": [0.1, 0.2, 0.3]}]

    with patch("dealflow.rag.llm_client.litellm.embedding", return_value=mock_response) as mock_e:
        result = embed("openai/text-embedding-3-small", "hello")

    assert result == [0.1, 0.2, 0.3]
    assert mock_e.call_args.kwargs["input"] == ["hello"]


# ------------------------------------------------------------------
# rerank()
# ------------------------------------------------------------------


def test_rerank_maps_results():
    mock_response = MagicMock()
    mock_response.results = [
        {"index": 2, "relevance_score": 0.91},
        {"index": 0, "relevance_score": 0.4},
        {"index": 1, "relevance_score": None},
    ]

    with patch("dealflow.rag.llm_client.litellm.rerank", return_value=mock_response) as mock_r:
        ranked = rerank("cohere/rerank-english-v3.0", "pricing", ["a", "b", "c"], top_n=2)

    assert ranked == [(2, 0.91), (0, 0.4)]
    assert mock_r.call_args.kwargs["top_n"] == 2
    assert mock_r.call_args.kwargs["documents"] == ["a", "b", "c"]


def test_rerank_empty_results():
    mock_response = MagicMock()
    mock_response.results = None

    with patch("dealflow.rag.llm_client.litellm.rerank", return_value=mock_response):
        assert rerank("cohere/rerank-english-v3.0", "q", ["a"], top_n=1) == []
