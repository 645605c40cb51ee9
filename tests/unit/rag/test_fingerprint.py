"""Tests for title fingerprinting and URL/fingerprint dedup."""

from __future__ import annotations

from dataclasses import dataclass

from dealflow.rag.fingerprint import dedupe, title_fingerprint


# ------------------------------------------------------------------
# title_fingerprint
# ------------------------------------------------------------------


def test_fingerprint_is_deterministic():
    title = "Acme Raises Big Series A"
    assert title_fingerprint(title) == title_fingerprint(title)


def test_fingerprint_ignores_word_order_and_punctuation():
    assert title_fingerprint("Acme Raises Big Series A") == title_fingerprint(
        "Big Series A: Acme Raises"
    )


def test_fingerprint_keeps_only_long_words_sorted():
    assert title_fingerprint("Acme Raises Big Series A") == "raises|series"


def test_fingerprint_takes_first_four_sorted_words():
    fp = title_fingerprint("zebra yellow xenon whale vapor umbra")
    assert fp == "umbra|vapor|whale|xenon"


def test_fingerprint_empty_for_short_words_or_none():
    assert title_fingerprint("A big win") == ""
    assert title_fingerprint("") == ""
    assert title_fingerprint(None) == ""


# ------------------------------------------------------------------
# dedupe
# ------------------------------------------------------------------


def test_dedupe_by_url_keeps_first():
    items = [{"url": "a"}, {"url": "a"}, {"url": "b"}]
    assert dedupe(items) == [{"url": "a"}, {"url": "b"}]


def test_dedupe_collapses_same_story_with_different_urls():
    items = [
        {"url": "https://techcrunch.com/acme", "title": "Acme Raises Big Series A"},
        {"url": "https://venturebeat.com/acme", "title": "Big Series A: Acme Raises"},
        {"url": "https://acme.io/blog", "title": "Acme launches analytics product"},
    ]
    result = dedupe(items)
    assert [i["url"] for i in result] == [
        "https://techcrunch.com/acme",
        "https://acme.io/blog",
    ]


def test_dedupe_empty_fingerprint_never_collides():
    items = [{"url": "a", "title": "Hi"}, {"url": "b", "title": "Yo"}]
    assert dedupe(items) == items


def test_dedupe_is_idempotent():
    items = [
        {"url": "a", "title": "Acme Raises Big Series A"},
        {"url": "a", "title": "Other headline entirely"},
        {"url": "c", "title": "Series A: Acme Raises Big"},
        {"url": "d", "title": "Funding roundup weekly digest"},
    ]
    once = dedupe(items)
    assert dedupe(once) == once


def test_dedupe_preserves_order():
    items = [{"url": u} for u in ["c", "a", "b", "a"]]
    assert [i["url"] for i in dedupe(items)] == ["c", "a", "b"]


def test_dedupe_reads_attributes_and_custom_accessors():
    @dataclass
    class Item:
        link: str
        headline: str

    items = [Item("x", "Quarterly earnings surprise"), Item("y", "Earnings surprise quarterly")]
    result = dedupe(items, url_of=lambda i: i.link, title_of=lambda i: i.headline)
    assert result == [items[0]]
