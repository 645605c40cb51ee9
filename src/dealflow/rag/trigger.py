"""Decide whether a message warrants live web search.

Any TRIGGER_PATTERNS match → search. Otherwise search only when the internal
index returned fewer than INTERNAL_SOURCE_FLOOR sources.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

INTERNAL_SOURCE_FLOOR = 6


@dataclass(frozen=True)
class TriggerPattern:
    name: str
    pattern: re.Pattern[str]
    description: str


TRIGGER_PATTERNS: tuple[TriggerPattern, ...] = (
    TriggerPattern(
        "what_it_does",
        re.compile(r"what (do|does|is|are) .*(they|company|it|product)"),
        "Asks what the entity does or is.",
    ),
    TriggerPattern("website", re.compile(r"website|site|homepage"), "Asks about the website."),
    TriggerPattern("pricing", re.compile(r"pricing|cost|subscription|plan"), "Asks about pricing."),
    TriggerPattern("customers", re.compile(r"customer|client|user"), "Asks about customers."),
    TriggerPattern(
        "funding",
        re.compile(r"funding|raise|invest|valuation|series"),
        "Asks about funding or valuation.",
    ),
    TriggerPattern(
        "news",
        re.compile(r"news|announcement|recent|latest"),
        "Asks for recent news.",
    ),
    TriggerPattern(
        "competitors",
        re.compile(r"competitor|market|similar|alternative"),
        "Asks about competitors or the market.",
    ),
    TriggerPattern("product", re.compile(r"product|feature|offering"), "Asks about the product."),
)


def matching_trigger(message: str) -> TriggerPattern | None:
    """Return the first trigger pattern found in *message*, if any."""
    text = (message or "").lower()
    for trigger in TRIGGER_PATTERNS:
        if trigger.pattern.search(text):
            return trigger
    return None


def should_search_web(
    message: str,
    internal_count: int,
    floor: int = INTERNAL_SOURCE_FLOOR,
) -> bool:
    if matching_trigger(message) is not None:
        return True
    return internal_count < floor
