"""External retrieval: targeted web queries, relevance filtering, dedup.

Query plan (priority order, first MAX_QUERIES kept):
  1. site:<domain>, "<company>" site:<domain>          (website known)
  2. "<company>" <kw1 kw2 kw3> [+ company startup]     (description known)
  3. "<company>" "<founder>" founder                   (founder known)
  4. "<company>" funding round investment 2024,
     "<company>" company startup news                  (generic fallback)
  Founder-only searches are used when no company name is known.

Queries run concurrently on a bounded thread pool with a shared deadline;
results are merged back in query-priority order, so the output does not
depend on which request finished first. A failing or timed-out query is
logged and skipped. Every raw hit goes through the relevance filter, then
URL + title-fingerprint dedup, then the MAX_SOURCES cap.
"""

from __future__ import annotations

import logging
import urllib.parse
from concurrent.futures import Future, ThreadPoolExecutor, wait

from dealflow.rag.fingerprint import dedupe
from dealflow.rag.keywords import extract_keywords
from dealflow.rag.models import Origin, Source
from dealflow.rag.relevance import EntityProfile, judge
from dealflow.rag.websearch import WebResult, WebSearchClient

logger = logging.getLogger(__name__)

MAX_QUERIES = 5
RESULTS_PER_QUERY = 4
TEXT_MAX_CHARS = 1500
HIGHLIGHT_SENTENCES = 5
MAX_SOURCES = 10
MAX_CONCURRENCY = 5
QUERY_TIMEOUT = 30.0  # seconds
QUERY_KEYWORDS = 3

# (source_kind, url markers, title markers), first match wins.
_WEB_SOURCE_KINDS: tuple[tuple[str, tuple[str, ...], tuple[str, ...]], ...] = (
    ("news", ("techcrunch", "bloomberg", "reuters"), ()),
    ("database", ("crunchbase", "pitchbook"), ()),
    ("linkedin", ("linkedin",), ()),
    ("funding", (), ("funding", "raises", "series")),
    ("docs", ("docs.", "/docs/"), ("documentation",)),
)


def parse_domain(website: str | None) -> str | None:
    """Return the bare host of *website* ('https://www.acme.io/x' → 'acme.io')."""
    if not website or not website.strip():
        return None
    value = website.strip()
    if not value.startswith(("http://", "https://")):
        value = f"https://{value}"
    try:
        host = urllib.parse.urlsplit(value).hostname
    except ValueError:
        return None
    if not host:
        return None
    return host.removeprefix("www.")


def build_search_queries(
    company_name: str | None = None,
    domain: str | None = None,
    keywords: list[str] | tuple[str, ...] = (),
    founder_name: str | None = None,
    limit: int = MAX_QUERIES,
) -> list[str]:
    """Return the prioritized web queries for an entity, capped at *limit*."""
    queries: list[str] = []

    if company_name:
        if domain:
            queries.append(f"site:{domain}")
            queries.append(f'"{company_name}" site:{domain}')

        if keywords:
            key_terms = " ".join(keywords[:QUERY_KEYWORDS])
            queries.append(f'"{company_name}" {key_terms}')
            queries.append(f'"{company_name}" {key_terms} company startup')

        if founder_name:
            queries.append(f'"{company_name}" "{founder_name}" founder')

        queries.append(f'"{company_name}" funding round investment 2024')
        queries.append(f'"{company_name}" company startup news')
    elif founder_name:
        queries.append(f'"{founder_name}" founder entrepreneur background')
        queries.append(f'"{founder_name}" startup CEO interview')

    return queries[:limit]


def categorize_web_source(url: str, title: str | None = None) -> str:
    """Return a display source_kind for a web hit based on its URL and title."""
    url_l = (url or "").lower()
    title_l = (title or "").lower()
    for kind, url_markers, title_markers in _WEB_SOURCE_KINDS:
        if any(m in url_l for m in url_markers) or any(m in title_l for m in title_markers):
            return kind
    return "web_page"


def retrieve_external(
    client: WebSearchClient,
    company_name: str | None = None,
    company_website: str | None = None,
    company_description: str | None = None,
    founder_name: str | None = None,
    query: str = "",
    max_queries: int = MAX_QUERIES,
    results_per_query: int = RESULTS_PER_QUERY,
    text_max_chars: int = TEXT_MAX_CHARS,
    highlight_sentences: int = HIGHLIGHT_SENTENCES,
    max_sources: int = MAX_SOURCES,
    concurrency: int = MAX_CONCURRENCY,
    query_timeout: float = QUERY_TIMEOUT,
) -> list[Source]:
    """Search the web for the entity and return verified WEB sources.

    *query* (the user's message) is accepted for interface symmetry; the web
    queries are built from the entity fields, not from free text.
    """
    entity = EntityProfile(
        company_name=company_name,
        domain=parse_domain(company_website),
        keywords=tuple(extract_keywords(company_description)),
        founder_name=founder_name,
    )
    queries = build_search_queries(
        entity.company_name,
        entity.domain,
        entity.keywords,
        entity.founder_name,
        limit=max_queries,
    )
    if not queries:
        return []

    batches = _run_queries(
        client,
        queries,
        results_per_query=results_per_query,
        text_max_chars=text_max_chars,
        highlight_sentences=highlight_sentences,
        concurrency=concurrency,
        timeout=query_timeout,
    )

    accepted: list[Source] = []
    for batch in batches:
        for result in batch:
            decision = judge(result, entity)
            if not decision.accepted:
                logger.debug("Filtered irrelevant source %s (rule=%s)", result.url, decision.rule)
                continue
            accepted.append(_result_to_source(result))

    return dedupe(accepted)[:max_sources]


def _run_queries(
    client: WebSearchClient,
    queries: list[str],
    results_per_query: int,
    text_max_chars: int,
    highlight_sentences: int,
    concurrency: int,
    timeout: float,
) -> list[list[WebResult]]:
    """Run *queries* on a bounded pool. Returns one result list per query, in order."""
    batches: list[list[WebResult]] = [[] for _ in queries]
    executor = ThreadPoolExecutor(
        max_workers=max(1, min(concurrency, len(queries))),
        thread_name_prefix="web_search",
    )
    try:
        futures: dict[Future, int] = {
            executor.submit(
                client.search,
                q,
                results_per_query,
                text_max_chars,
                highlight_sentences,
            ): i
            for i, q in enumerate(queries)
        }
        done, not_done = wait(futures, timeout=timeout)

        for future in not_done:
            future.cancel()
            logger.warning(
                "Web query %r exceeded %.1fs; skipped", queries[futures[future]], timeout
            )

        for future in done:
            i = futures[future]
            try:
                batch = future.result()
            except Exception as exc:
                logger.warning("Web query %r failed: %s", queries[i], exc)
                continue
            if isinstance(batch, list):
                batches[i] = [r for r in batch if isinstance(r, WebResult)]
    finally:
        executor.shutdown(wait=False, cancel_futures=True)

    return batches


def _result_to_source(result: WebResult) -> Source:
    return Source(
        id=result.id or result.url,
        origin=Origin.WEB,
        source_kind=categorize_web_source(result.url, result.title),
        title=result.title or result.url,
        content=result.body,
        url=result.url,
        date=result.published_date,
        score=result.score,
        author=result.author,
    )
