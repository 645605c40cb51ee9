"""Tests for the web-search trigger heuristic."""

from __future__ import annotations

import pytest

from dealflow.rag.trigger import (
    INTERNAL_SOURCE_FLOOR,
    TRIGGER_PATTERNS,
    matching_trigger,
    should_search_web,
)


def test_pattern_overrides_count_floor():
    assert should_search_web("What's their pricing?", 10) is True


def test_no_pattern_with_enough_sources():
    assert should_search_web("ok thanks", 10) is False


def test_no_pattern_with_few_sources():
    assert should_search_web("ok thanks", INTERNAL_SOURCE_FLOOR - 1) is True
    assert should_search_web("ok thanks", INTERNAL_SOURCE_FLOOR) is False


def test_custom_floor():
    assert should_search_web("ok thanks", 3, floor=2) is False
    assert should_search_web("ok thanks", 1, floor=2) is True


@pytest.mark.parametrize(
    "message, rule",
    [
        ("What does the company do?", "what_it_does"),
        ("Send me their homepage", "website"),
        ("How much is a subscription?", "pricing"),
        ("Who are the biggest clients?", "customers"),
        ("Did they close the Series A?", "funding"),
        ("Any recent announcement?", "news"),
        ("Who are the main competitors?", "competitors"),
        ("Tell me about the offering", "product"),
    ],
)
def test_each_trigger_rule_fires(message, rule):
    match = matching_trigger(message)
    assert match is not None
    assert match.name == rule


def test_matching_is_case_insensitive():
    assert matching_trigger("PRICING PLEASE").name == "pricing"


def test_no_trigger():
    assert matching_trigger("ok thanks") is None
    assert matching_trigger("") is None


def test_rule_table_is_ordered_and_described():
    names = [t.name for t in TRIGGER_PATTERNS]
    assert names[0] == "what_it_does"
    assert len(names) == len(set(names))
    assert all(t.description for t in TRIGGER_PATTERNS)
