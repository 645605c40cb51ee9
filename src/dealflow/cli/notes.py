"""dealflow add-note — write an internal note into a user's index namespace."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from dealflow.cli.errors import err_empty_note, err_file_not_found
from dealflow.cli.runtime import load_config_or_exit, open_index_or_exit, require_api_key, resolve_db
from dealflow.rag.index import IndexRecord, user_namespace

console = Console()


def add_note_cmd(
    ctx: typer.Context,
    user: Annotated[str, typer.Option("--user", "-u", help="Owner user id.")],
    title: Annotated[str, typer.Option("--title", help="Note title.")],
    text: Annotated[
        str | None,
        typer.Option("--text", help="Note body."),
    ] = None,
    file: Annotated[
        Path | None,
        typer.Option("--file", help="Read the note body from a text file."),
    ] = None,
    kind: Annotated[
        str,
        typer.Option("--kind", help="Source kind (note, email, meeting, ...)."),
    ] = "note",
    company_id: Annotated[str | None, typer.Option("--company-id")] = None,
    founder_id: Annotated[str | None, typer.Option("--founder-id")] = None,
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Path to the index database."),
    ] = None,
) -> None:
    """Add a note to the user's internal index."""
    cfg = load_config_or_exit((ctx.obj or {}).get("log_level"))

    if file is not None:
        if not file.is_file():
            console.print(err_file_not_found(str(file)))
            raise typer.Exit(1)
        text = file.read_text(encoding="utf-8")
    if not text or not text.strip():
        console.print(err_empty_note())
        raise typer.Exit(1)

    require_api_key(cfg.index.embedding_model)
    index = open_index_or_exit(resolve_db(db, cfg), cfg)
    record = IndexRecord(
        id=f"{kind}_{uuid.uuid4().hex}",
        owner_id=user,
        content=text.strip(),
        source_kind=kind,
        title=title,
        created_at=datetime.now(timezone.utc).isoformat(),
        company_id=company_id,
        founder_id=founder_id,
    )
    try:
        index.upsert(user_namespace(user), [record])
    except Exception as exc:
        console.print(f"[red]Error:[/] Could not index note: {exc}")
        raise typer.Exit(1)
    finally:
        index.close()

    console.print(f"[green]✓[/] Added {kind} '{title}' ({record.id})")
