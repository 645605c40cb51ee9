"""Near-duplicate detection via title fingerprints.

fingerprint(title) = the first 4 alphabetically sorted words longer than 4
characters, joined with '|'. Word order is sorted away, so
"Acme Raises Big Series A" and "Big Series A: Acme Raises" collapse to the
same story even when their URLs differ.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable
from typing import TypeVar

T = TypeVar("T")

FINGERPRINT_WORDS = 4
MIN_WORD_LENGTH = 5  # words must be longer than 4 characters
SEPARATOR = "|"

_STRIP_RE = re.compile(r"[^a-z0-9\s]")


def title_fingerprint(title: str | None) -> str:
    """Return the normalized fingerprint of *title* ('' if no word qualifies)."""
    if not title:
        return ""
    words = _STRIP_RE.sub("", title.lower()).split()
    significant = sorted(w for w in words if len(w) >= MIN_WORD_LENGTH)
    return SEPARATOR.join(significant[:FINGERPRINT_WORDS])


def _default_url(item: object) -> str | None:
    if isinstance(item, dict):
        return item.get("url")
    return getattr(item, "url", None)


def _default_title(item: object) -> str | None:
    if isinstance(item, dict):
        return item.get("title")
    return getattr(item, "title", None)


def dedupe(
    items: Iterable[T],
    url_of: Callable[[T], str | None] = _default_url,
    title_of: Callable[[T], str | None] = _default_title,
) -> list[T]:
    """Drop items whose URL or title fingerprint was already seen.

    Single left-to-right pass: first occurrence wins and input order is kept.
    Items without a URL are only compared by fingerprint; an empty
    fingerprint never collides. Running the pass on its own output is a no-op.
    """
    seen_urls: set[str] = set()
    seen_fingerprints: set[str] = set()
    kept: list[T] = []

    for item in items:
        url = url_of(item)
        if url and url in seen_urls:
            continue
        fingerprint = title_fingerprint(title_of(item))
        if fingerprint and fingerprint in seen_fingerprints:
            continue

        kept.append(item)
        if url:
            seen_urls.add(url)
        if fingerprint:
            seen_fingerprints.add(fingerprint)

    return kept
