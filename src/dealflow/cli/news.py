"""dealflow news — merge RSS/Atom feeds into one de-duplicated digest.

Sources may be local files or http(s) URLs; with none given the curated
feed list is fetched.
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.table import Table

from dealflow.cli.errors import err_file_not_found, warn_no_feed_items
from dealflow.cli.runtime import load_config_or_exit
from dealflow.news.feed import (
    CURATED_FEEDS,
    FeedCache,
    NewsItem,
    FeedConfig,
    feed_for_url,
    fetch_all,
    parse_feed,
    rank_feed,
)

console = Console()


def _is_url(value: str) -> bool:
    return value.startswith(("http://", "https://"))


def news_cmd(
    ctx: typer.Context,
    feeds: Annotated[
        list[str] | None,
        typer.Argument(help="RSS/Atom files or URLs. Defaults to the curated feed list."),
    ] = None,
    keyword: Annotated[
        list[str] | None,
        typer.Option("--keyword", "-k", help="Keep items mentioning this term (repeatable)."),
    ] = None,
    limit: Annotated[int, typer.Option("--limit", "-n", help="Max items shown.")] = 20,
) -> None:
    """Show the newest items across feeds with same-story duplicates collapsed."""
    cfg = load_config_or_exit((ctx.obj or {}).get("log_level"))
    cache = FeedCache(ttl_seconds=cfg.news.cache_ttl_seconds)

    targets = feeds or [feed.url for feed in CURATED_FEEDS]
    curated = {feed.url: feed for feed in CURATED_FEEDS}

    items: list[NewsItem] = []
    remote: list[FeedConfig] = []
    for target in targets:
        if _is_url(target):
            remote.append(curated.get(target) or feed_for_url(target))
            continue
        path = Path(target)
        if not path.is_file():
            console.print(err_file_not_found(str(path)))
            raise typer.Exit(1)
        items.extend(parse_feed(path.read_bytes(), source_label=path.stem))
    items.extend(fetch_all(remote, cache, timeout=cfg.news.timeout))

    ranked = rank_feed(items, keyword or [], limit=limit)
    if not ranked:
        console.print(warn_no_feed_items(len(targets)))
        return

    table = Table(show_header=True, box=None, padding=(0, 1))
    table.add_column("Date", style="dim", no_wrap=True)
    table.add_column("Source", style="cyan")
    table.add_column("Title")
    for item in ranked:
        date = item.published_at.strftime("%Y-%m-%d") if item.published_at else ""
        table.add_row(date, item.source, f"{item.title}\n[dim]{item.link}[/]")

    console.print(table)
    console.print(f"[dim]{len(ranked)} of {len(items)} items after collapsing duplicates[/]")
