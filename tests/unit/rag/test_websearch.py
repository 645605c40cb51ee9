"""Tests for the Exa client and payload parsing."""

from __future__ import annotations

import io
import json
import urllib.error
from unittest.mock import MagicMock, patch

import pytest

from dealflow.rag.websearch import ExaClient, WebResult, WebSearchError, parse_results


# ------------------------------------------------------------------
# parse_results
# ------------------------------------------------------------------


def test_parse_results_maps_fields():
    raw = {
        "results": [
            {
                "id": "r1",
                "url": "https://acme.io",
                "title": "Acme",
                "text": "Acme builds routing software.",
                "highlights": ["Acme builds", "routing"],
                "publishedDate": "2024-02-01T00:00:00.000Z",
                "author": "Jo",
                "score": 0.42,
            }
        ]
    }
    [result] = parse_results(raw)
    assert result == WebResult(
        id="r1",
        url="https://acme.io",
        title="Acme",
        text="Acme builds routing software.",
        highlights=["Acme builds", "routing"],
        published_date="2024-02-01T00:00:00.000Z",
        author="Jo",
        score=0.42,
    )


def test_parse_results_skips_items_without_url():
    raw = {"results": [{"title": "no url"}, "junk", {"url": "https://ok.example.com"}]}
    results = parse_results(raw)
    assert [r.url for r in results] == ["https://ok.example.com"]
    assert results[0].id == "https://ok.example.com"


@pytest.mark.parametrize("raw", [None, [], "text", {"results": None}, {"data": []}])
def test_parse_results_malformed_is_empty(raw):
    assert parse_results(raw) == []


def test_body_falls_back_to_highlights():
    result = WebResult(id="1", url="u", text=None, highlights=["one.", "two."])
    assert result.body == "one. two."
    assert WebResult(id="1", url="u").body == ""


# ------------------------------------------------------------------
# ExaClient
# ------------------------------------------------------------------


def _response(body: bytes) -> MagicMock:
    response = MagicMock()
    response.read.return_value = body
    response.__enter__.return_value = response
    return response


def test_from_env_none_without_key(monkeypatch):
    monkeypatch.delenv("EXA_API_KEY", raising=False)
    assert ExaClient.from_env() is None


def test_from_env_with_key(monkeypatch):
    monkeypatch.setenv("EXA_API_KEY", "exa-test")
    assert isinstance(ExaClient.from_env(), ExaClient)


def test_empty_api_key_rejected():
    with pytest.raises(ValueError):
        ExaClient("")


def test_search_posts_expected_payload():
    body = json.dumps({"results": [{"url": "https://acme.io", "title": "Acme"}]}).encode()
    client = ExaClient("exa-test", endpoint="https://search.example.com")

    with patch("dealflow.rag.websearch.urllib.request.urlopen", return_value=_response(body)) as mock_open:
        results = client.search("site:acme.io", num_results=4, text_max_chars=1500, highlight_sentences=5)

    assert [r.url for r in results] == ["https://acme.io"]
    request = mock_open.call_args[0][0]
    assert request.full_url == "https://search.example.com"
    assert request.get_header("X-api-key") == "exa-test"
    payload = json.loads(request.data)
    assert payload["query"] == "site:acme.io"
    assert payload["numResults"] == 4
    assert payload["contents"] == {
        "text": {"maxCharacters": 1500},
        "highlights": {"numSentences": 5},
    }


def test_search_http_error_raises():
    error = urllib.error.HTTPError("https://x", 429, "Too Many Requests", {}, io.BytesIO(b""))
    with patch("dealflow.rag.websearch.urllib.request.urlopen", side_effect=error):
        with pytest.raises(WebSearchError, match="429"):
            ExaClient("k").search("q")


def test_search_network_error_raises():
    with patch(
        "dealflow.rag.websearch.urllib.request.urlopen",
        side_effect=urllib.error.URLError("dns failure"),
    ):
        with pytest.raises(WebSearchError):
            ExaClient("k").search("q")


def test_search_non_json_body_is_empty():
    with patch("dealflow.rag.websearch.urllib.request.urlopen", return_value=_response(b"<html>")):
        assert ExaClient("k").search("q") == []
