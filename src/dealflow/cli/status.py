"""dealflow status command.

Shows the index database, configured models, web search availability,
and document counts per user namespace.
"""

from __future__ import annotations

import os
import sqlite3
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from dealflow.cli.runtime import load_config_or_exit, resolve_db
from dealflow.config import DealflowConfig
from dealflow.db.connection import open_index_db
from dealflow.db.repository import Repository

console = Console()


def status_cmd(
    ctx: typer.Context,
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Path to the index database."),
    ] = None,
) -> None:
    """Show index and configuration status."""
    cfg = load_config_or_exit((ctx.obj or {}).get("log_level"))
    db_path = resolve_db(db, cfg)

    _show_config_panel(db_path, cfg)

    if not db_path.exists():
        console.print(
            Panel(
                "[yellow]No database found.[/]\n"
                "  Run:  dealflow init",
                title="[bold]Index[/]",
                expand=False,
            )
        )
        return

    conn = open_index_db(db_path)
    try:
        _show_index_panel(conn, Repository(conn))
    finally:
        conn.close()


def _show_config_panel(db_path: Path, cfg: DealflowConfig) -> None:
    db_info = f"{db_path}"
    if db_path.exists():
        size_mb = db_path.stat().st_size / (1024 * 1024)
        db_info = f"{db_path} ({size_mb:.1f} MB)"

    if not cfg.web_search.enabled:
        web = "[dim]disabled in config[/]"
    elif os.getenv("EXA_API_KEY"):
        web = "[green]✓ enabled[/]"
    else:
        web = "[yellow]✗ EXA_API_KEY not set[/]"

    lines = [
        f"Database:   {db_info}",
        f"Embedding:  {cfg.index.embedding_model}",
        f"Rerank:     {cfg.index.rerank_model or '[dim](none)[/]'}",
        f"Assistant:  {cfg.assistant.model}",
        f"Web search: {web}",
        f"Flywheel:   {'on' if cfg.flywheel.enabled else 'off'}",
    ]
    console.print(Panel("\n".join(lines), title="[bold]Dealflow[/]", expand=False))


def _show_index_panel(conn: sqlite3.Connection, repo: Repository) -> None:
    counts = repo.count_by_namespace()
    if not counts:
        console.print(
            Panel("[dim]No documents indexed yet.[/]", title="[bold]Index[/]", expand=False)
        )
        return

    table = Table(show_header=True, box=None, padding=(0, 1))
    table.add_column("Namespace", style="bold")
    table.add_column("Documents", justify="right")
    table.add_column("Web", justify="right", style="dim")
    for namespace, total in counts:
        web = conn.execute(
            "SELECT COUNT(*) FROM documents WHERE namespace = ? AND source_kind = 'web_document'",
            (namespace,),
        ).fetchone()[0]
        table.add_row(namespace, f"{total:,}", f"{web:,}")

    vec_tables = repo.list_vec_tables()
    title = f"[bold]Index[/] [dim]({len(vec_tables)} vector table(s))[/]"
    console.print(Panel(table, title=title, expand=False))

