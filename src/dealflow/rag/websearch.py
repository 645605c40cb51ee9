"""Web search provider contract and the Exa HTTP client.

The retrieval core only sees the WebSearchClient protocol. ExaClient speaks
Exa's JSON search API over plain urllib:

- Transport failures (DNS, timeout, HTTP error) raise WebSearchError; the
  external retriever logs and skips that one query.
- A malformed payload yields an empty list for that call.
- Results without a URL are dropped; URL identity is what dedup keys on.
"""

from __future__ import annotations

import json
import logging
import os
import urllib.error
import urllib.request
from dataclasses import dataclass, field
from typing import Any, Protocol

logger = logging.getLogger(__name__)

EXA_ENDPOINT = "https://api.exa.ai/search"
EXA_API_KEY_ENV = "EXA_API_KEY"
_USER_AGENT = "dealflow/0.1"
_TIMEOUT = 20  # seconds


class WebSearchError(RuntimeError):
    """Raised when the web search provider cannot be reached or refuses a query."""


@dataclass
class WebResult:
    """One raw web search hit, before relevance filtering."""

    id: str
    url: str
    title: str = ""
    text: str | None = None
    highlights: list[str] = field(default_factory=list)
    published_date: str | None = None
    author: str | None = None
    score: float | None = None

    @property
    def body(self) -> str:
        """Text excerpt, falling back to the joined highlight sentences."""
        if self.text:
            return self.text
        return " ".join(self.highlights)


class WebSearchClient(Protocol):
    def search(
        self,
        query: str,
        num_results: int,
        text_max_chars: int,
        highlight_sentences: int,
    ) -> list[WebResult]: ...


class ExaClient:
    """Minimal Exa search client (neural search with text + highlight contents).

    Args:
        api_key: Exa API key. Use from_env() to read EXA_API_KEY.
        endpoint: Search endpoint URL (overridable for tests/proxies).
        timeout: Socket timeout in seconds for one request.
    """

    def __init__(
        self,
        api_key: str,
        endpoint: str = EXA_ENDPOINT,
        timeout: float = _TIMEOUT,
    ) -> None:
        if not api_key:
            raise ValueError("ExaClient requires a non-empty api_key.")
        self._api_key = api_key
        self._endpoint = endpoint
        self._timeout = timeout

    @classmethod
    def from_env(cls, endpoint: str = EXA_ENDPOINT, timeout: float = _TIMEOUT) -> ExaClient | None:
        """Return a client configured from EXA_API_KEY, or None when unset."""
        api_key = os.environ.get(EXA_API_KEY_ENV)
        if not api_key:
            return None
        return cls(api_key, endpoint=endpoint, timeout=timeout)

    def search(
        self,
        query: str,
        num_results: int = 4,
        text_max_chars: int = 1500,
        highlight_sentences: int = 5,
    ) -> list[WebResult]:
        payload = {
            "query": query,
            "numResults": num_results,
            "type": "neural",
            "useAutoprompt": False,
            "contents": {
                "text": {"maxCharacters": text_max_chars},
                "highlights": {"numSentences": highlight_sentences},
            },
        }
        raw = self._post(payload)
        return parse_results(raw)

    def _post(self, payload: dict[str, Any]) -> Any:
        request = urllib.request.Request(
            self._endpoint,
            data=json.dumps(payload).encode("utf-8"),
            headers={
                "Content-Type": "application/json",
                "Accept": "application/json",
                "User-Agent": _USER_AGENT,
                "x-api-key": self._api_key,
            },
            method="POST",
        )
        try:
            with urllib.request.urlopen(request, timeout=self._timeout) as response:
                body = response.read()
        except urllib.error.HTTPError as exc:
            raise WebSearchError(f"Exa search failed with HTTP {exc.code}: {exc.reason}") from exc
        except (urllib.error.URLError, TimeoutError, OSError) as exc:
            raise WebSearchError(f"Exa search request failed: {exc}") from exc

        try:
            return json.loads(body.decode("utf-8", errors="replace"))
        except json.JSONDecodeError:
            logger.warning("Exa returned a non-JSON body; treating as no results")
            return None


def parse_results(raw: Any) -> list[WebResult]:
    """Convert an Exa response payload into WebResults. Malformed → []."""
    if not isinstance(raw, dict) or not isinstance(raw.get("results"), list):
        return []

    results: list[WebResult] = []
    for item in raw["results"]:
        if not isinstance(item, dict):
            continue
        url = item.get("url")
        if not isinstance(url, str) or not url:
            continue
        highlights = item.get("highlights")
        score = item.get("score")
        results.append(
            WebResult(
                id=str(item.get("id") or url),
                url=url,
                title=str(item.get("title") or ""),
                text=item.get("text") if isinstance(item.get("text"), str) else None,
                highlights=[str(h) for h in highlights] if isinstance(highlights, list) else [],
                published_date=item.get("publishedDate"),
                author=item.get("author"),
                score=float(score) if isinstance(score, (int, float)) else None,
            )
        )
    return results
