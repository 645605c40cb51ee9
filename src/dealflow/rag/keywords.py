"""Disambiguating keyword extraction from free-text company descriptions.

No frequency ranking: keywords keep their position order from the source text,
so the first terms of a description weigh most in search queries.
"""

from __future__ import annotations

import re

MAX_KEYWORDS = 10
MIN_KEYWORD_LENGTH = 4  # tokens must be longer than 3 characters

_NON_ALNUM_RE = re.compile(r"[^a-z0-9\s]")

# English function words plus domain-generic nouns that every startup
# description contains and that therefore carry no disambiguating signal.
STOP_WORDS: frozenset[str] = frozenset(
    [
        "the", "a", "an", "and", "or", "but", "is", "are", "was", "were",
        "be", "been", "being", "have", "has", "had", "do", "does", "did",
        "will", "would", "could", "should", "may", "might", "must",
        "for", "of", "to", "in", "on", "at", "by", "with", "from",
        "that", "this", "it", "its", "their", "our", "your", "we", "they",
        "company", "startup", "business", "platform", "solution", "solutions",
        "technology", "software", "service", "services",
    ]
)


def extract_keywords(description: str | None, limit: int = MAX_KEYWORDS) -> list[str]:
    """Return up to *limit* candidate terms from *description*, in text order.

    Lowercases, turns non-alphanumerics into whitespace, drops stop words and
    tokens of 3 characters or fewer. A repeated token is kept once.

    Example:
        >>> extract_keywords("The company builds a platform for climate data")
        ['builds', 'climate', 'data']
    """
    if not description:
        return []

    normalized = _NON_ALNUM_RE.sub(" ", description.lower())
    keywords: list[str] = []
    for token in normalized.split():
        if len(token) < MIN_KEYWORD_LENGTH or token in STOP_WORDS:
            continue
        if token in keywords:
            continue
        keywords.append(token)
        if len(keywords) >= limit:
            break
    return keywords
