"""RSS/Atom news feeds: fetching, parsing and near-duplicate collapsing.

Several outlets usually cover the same story with slightly different
headlines. rank_feed() keeps one item per story using the same URL +
title-fingerprint dedup as web retrieval:

  keyword filter → collapse near-duplicates → newest first → limit

Remote feeds are fetched with urllib and cached per URL in a FeedCache.
Within the TTL the cached items are returned without a request; after it
the request is revalidated with If-None-Match / If-Modified-Since and a
304 reuses the cached items. fetch_news() skips (and logs) any feed that
fails so one broken outlet never empties the digest.
"""

from __future__ import annotations

import logging
import threading
import time
import urllib.error
import urllib.parse
import urllib.request
import xml.etree.ElementTree as ET
from collections.abc import Callable, Iterable, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime

from bs4 import BeautifulSoup

from dealflow.rag.fingerprint import dedupe

logger = logging.getLogger(__name__)

_ATOM_NS = "{http://www.w3.org/2005/Atom}"
_SUMMARY_CHARS = 500
_OLDEST = datetime.min.replace(tzinfo=timezone.utc)

_USER_AGENT = "dealflow/0.1 (+news digest)"
_MAX_BYTES = 5 * 1024 * 1024  # 5 MB
DEFAULT_TIMEOUT = 15.0  # seconds
CACHE_TTL_SECONDS = 15 * 60


@dataclass(frozen=True)
class NewsItem:
    title: str
    link: str
    source: str = ""
    published_at: datetime | None = None
    summary: str = ""
    categories: tuple[str, ...] = field(default_factory=tuple)


def parse_feed(xml: str | bytes, source_label: str = "") -> list[NewsItem]:
    """Parse an RSS 2.0 or Atom document into NewsItems.

    Each item's source is its link host; *source_label* stands in when the
    link has none. Items without a title or link are skipped. Malformed XML
    yields [].
    """
    try:
        root = ET.fromstring(xml)
    except ET.ParseError as exc:
        logger.warning("Could not parse feed %s: %s", source_label or "(unnamed)", exc)
        return []

    items: list[NewsItem] = []
    for node in root.iter("item"):
        item = _rss_item(node, source_label)
        if item is not None:
            items.append(item)
    for node in root.iter(f"{_ATOM_NS}entry"):
        item = _atom_entry(node, source_label)
        if item is not None:
            items.append(item)
    return items


def matches_keywords(item: NewsItem, keywords: Iterable[str]) -> bool:
    """True if any keyword occurs in the title, summary or categories.

    An empty keyword list matches everything.
    """
    terms = [k.lower() for k in keywords if k and k.strip()]
    if not terms:
        return True
    haystack = " ".join([item.title, item.summary, *item.categories]).lower()
    return any(term in haystack for term in terms)


def collapse_near_duplicates(items: Sequence[NewsItem]) -> list[NewsItem]:
    """Drop repeated links and same-story headlines; first-seen wins."""
    return dedupe(items, url_of=lambda i: i.link, title_of=lambda i: i.title)


def rank_feed(
    items: Sequence[NewsItem],
    keywords: Iterable[str] = (),
    limit: int = 20,
) -> list[NewsItem]:
    keywords = list(keywords)
    matching = [i for i in items if matches_keywords(i, keywords)]
    collapsed = collapse_near_duplicates(matching)
    collapsed.sort(key=lambda i: i.published_at or _OLDEST, reverse=True)
    return collapsed[:limit]


# ---------------------------------------------------------------------------
# Remote feeds
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FeedConfig:
    """One remote feed: a display name, its URL and topic hints."""

    name: str
    url: str
    topics: tuple[str, ...] = ()


CURATED_FEEDS: tuple[FeedConfig, ...] = (
    FeedConfig("TechCrunch", "https://techcrunch.com/feed/", ("startups", "technology")),
    FeedConfig("VentureBeat", "https://venturebeat.com/feed/", ("startups", "ai", "enterprise")),
    FeedConfig("WSJ Markets", "https://feeds.a.dj.com/rss/RSSMarketsMain.xml", ("markets", "finance")),
    FeedConfig("FT Companies", "https://www.ft.com/companies?format=rss", ("companies", "business")),
)


def feed_for_url(url: str) -> FeedConfig:
    """Ad-hoc FeedConfig for a URL given on the command line, named by its host."""
    return FeedConfig(name=_source_of(url, url), url=url)


@dataclass
class CachedFeed:
    items: list[NewsItem]
    etag: str | None = None
    last_modified: str | None = None
    fetched_at: float = 0.0


class FeedCache:
    """Per-URL feed cache with a freshness window; safe to share across threads."""

    def __init__(
        self,
        ttl_seconds: float = CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, CachedFeed] = {}
        self._lock = threading.Lock()

    def get(self, url: str) -> CachedFeed | None:
        with self._lock:
            return self._entries.get(url)

    def is_fresh(self, entry: CachedFeed) -> bool:
        return self._clock() - entry.fetched_at < self.ttl_seconds

    def store(
        self,
        url: str,
        items: list[NewsItem],
        etag: str | None = None,
        last_modified: str | None = None,
    ) -> CachedFeed:
        entry = CachedFeed(list(items), etag, last_modified, self._clock())
        with self._lock:
            self._entries[url] = entry
        return entry

    def touch(self, url: str) -> None:
        """Restart the freshness window after a 304."""
        with self._lock:
            entry = self._entries.get(url)
            if entry is not None:
                entry.fetched_at = self._clock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


_DEFAULT_CACHE = FeedCache()


def fetch_feed(
    feed: FeedConfig,
    cache: FeedCache | None = None,
    timeout: float = DEFAULT_TIMEOUT,
) -> list[NewsItem]:
    """Fetch and parse one remote feed, honouring *cache*.

    A fresh cache entry is returned without a request. A stale one is
    revalidated with its ETag / Last-Modified; on 304 the cached items are
    reused. Items are labelled with *feed.name* when a link has no host.

    Raises:
        ValueError: Non-http(s) URL, or body over the size cap.
        RuntimeError: Network failure or an HTTP error status.
    """
    scheme = urllib.parse.urlparse(feed.url).scheme
    if scheme not in ("http", "https"):
        raise ValueError(f"Unsupported feed URL scheme '{scheme}' for '{feed.url}'.")

    cached = cache.get(feed.url) if cache is not None else None
    if cached is not None and cache.is_fresh(cached):
        logger.debug("Feed %s served from cache", feed.name)
        return list(cached.items)

    headers = {"User-Agent": _USER_AGENT}
    if cached is not None and cached.etag:
        headers["If-None-Match"] = cached.etag
    if cached is not None and cached.last_modified:
        headers["If-Modified-Since"] = cached.last_modified
    request = urllib.request.Request(feed.url, headers=headers)

    try:
        with urllib.request.urlopen(request, timeout=timeout) as response:
            body = response.read(_MAX_BYTES + 1)
            etag = response.headers.get("ETag")
            last_modified = response.headers.get("Last-Modified")
    except urllib.error.HTTPError as exc:
        if exc.code == 304 and cached is not None:
            logger.debug("Feed %s not modified", feed.name)
            cache.touch(feed.url)
            return list(cached.items)
        raise RuntimeError(f"Feed '{feed.name}' returned HTTP {exc.code}.") from exc
    except urllib.error.URLError as exc:
        raise RuntimeError(f"Failed to fetch feed '{feed.name}': {exc.reason}") from exc

    if len(body) > _MAX_BYTES:
        raise ValueError(f"Feed '{feed.name}' exceeds {_MAX_BYTES // (1024 * 1024)} MB.")

    items = parse_feed(body, source_label=feed.name)
    if cache is not None:
        cache.store(feed.url, items, etag=etag, last_modified=last_modified)
    return items


def fetch_all(
    feeds: Sequence[FeedConfig],
    cache: FeedCache | None = None,
    timeout: float = DEFAULT_TIMEOUT,
    max_workers: int = 4,
) -> list[NewsItem]:
    """Fetch *feeds* in parallel; items come back in feed order.

    A feed that fails is logged and contributes no items.
    """
    feeds = list(feeds)
    if not feeds:
        return []
    cache = cache if cache is not None else _DEFAULT_CACHE

    items: list[NewsItem] = []
    with ThreadPoolExecutor(max_workers=max(1, min(max_workers, len(feeds)))) as pool:
        futures = [pool.submit(fetch_feed, feed, cache, timeout) for feed in feeds]
        for feed, future in zip(feeds, futures):
            try:
                items.extend(future.result())
            except Exception as exc:
                logger.warning("Skipping feed %s: %s", feed.name, exc)
    return items


def fetch_news(
    keywords: Iterable[str] = (),
    limit: int = 50,
    feeds: Sequence[FeedConfig] = CURATED_FEEDS,
    cache: FeedCache | None = None,
    timeout: float = DEFAULT_TIMEOUT,
) -> list[NewsItem]:
    """One ranked, de-duplicated digest across *feeds*."""
    return rank_feed(fetch_all(feeds, cache, timeout), keywords, limit=limit)


# ---------------------------------------------------------------------------
# Element helpers
# ---------------------------------------------------------------------------


def _rss_item(node: ET.Element, source_label: str) -> NewsItem | None:
    title = _text(node.find("title"))
    link = _text(node.find("link")) or _text(node.find("guid"))
    if not title or not link:
        return None
    return NewsItem(
        title=title,
        link=link,
        source=_source_of(link, source_label),
        published_at=_parse_date(_text(node.find("pubDate"))),
        summary=_strip_html(_text(node.find("description"))),
        categories=tuple(c for c in (_text(n) for n in node.findall("category")) if c),
    )


def _atom_entry(node: ET.Element, source_label: str) -> NewsItem | None:
    title = _text(node.find(f"{_ATOM_NS}title"))
    link = ""
    for link_node in node.findall(f"{_ATOM_NS}link"):
        if link_node.get("rel", "alternate") == "alternate" and link_node.get("href"):
            link = link_node.get("href", "").strip()
            break
    if not title or not link:
        return None
    published = _text(node.find(f"{_ATOM_NS}published")) or _text(node.find(f"{_ATOM_NS}updated"))
    summary = _text(node.find(f"{_ATOM_NS}summary")) or _text(node.find(f"{_ATOM_NS}content"))
    return NewsItem(
        title=title,
        link=link,
        source=_source_of(link, source_label),
        published_at=_parse_date(published),
        summary=_strip_html(summary),
        categories=tuple(
            c.get("term", "").strip()
            for c in node.findall(f"{_ATOM_NS}category")
            if c.get("term", "").strip()
        ),
    )


def _text(node: ET.Element | None) -> str:
    if node is None or node.text is None:
        return ""
    return node.text.strip()


def _strip_html(value: str) -> str:
    if not value:
        return ""
    text = BeautifulSoup(value, "html.parser").get_text(" ", strip=True)
    return text[:_SUMMARY_CHARS]


def _parse_date(value: str) -> datetime | None:
    """Parse RFC 822 (RSS) or ISO 8601 (Atom) dates; naive values are taken as UTC."""
    if not value:
        return None
    parsed: datetime | None
    try:
        parsed = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
    if parsed is None:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _source_of(link: str, fallback: str) -> str:
    """Host of *link* without a leading ``www.``; *fallback* when it has none."""
    try:
        host = urllib.parse.urlparse(link).hostname
    except ValueError:
        return fallback
    if not host:
        return fallback
    return host.removeprefix("www.")
