"""dealflow context / dealflow ask.

  dealflow context --user u1 --company "Acme" --website acme.io "What's their pricing?"
  dealflow ask     --user u1 --company "Acme" "Who are their customers?"

context prints the citation list and context blocks (or JSON with --json);
ask sends them to the assistant model and prints a cited answer.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.text import Text

from dealflow.cli.errors import err_llm_failed
from dealflow.cli.runtime import load_config_or_exit, open_runtime, require_api_key, resolve_db
from dealflow.rag.assistant import Assistant
from dealflow.rag.models import ContextPack
from dealflow.rag.sessions import SessionStore

console = Console()

UserOpt = Annotated[str, typer.Option("--user", "-u", help="User id whose index is searched.")]
CompanyIdOpt = Annotated[str | None, typer.Option("--company-id", help="Scope to this company id.")]
CompanyOpt = Annotated[str | None, typer.Option("--company", help="Company name.")]
WebsiteOpt = Annotated[str | None, typer.Option("--website", help="Company website.")]
DescriptionOpt = Annotated[str | None, typer.Option("--description", help="Company description.")]
FounderIdOpt = Annotated[str | None, typer.Option("--founder-id", help="Scope to this founder id.")]
FounderOpt = Annotated[str | None, typer.Option("--founder", help="Founder name.")]
NoWebOpt = Annotated[bool, typer.Option("--no-web", help="Internal sources only.")]
DbOpt = Annotated[Path | None, typer.Option("--db", help="Path to the index database.")]


def context_cmd(
    ctx: typer.Context,
    message: Annotated[str, typer.Argument(help="The question to build context for.")],
    user: UserOpt,
    company_id: CompanyIdOpt = None,
    company: CompanyOpt = None,
    website: WebsiteOpt = None,
    description: DescriptionOpt = None,
    founder_id: FounderIdOpt = None,
    founder: FounderOpt = None,
    no_web: NoWebOpt = False,
    as_json: Annotated[bool, typer.Option("--json", help="Print machine-readable JSON.")] = False,
    db: DbOpt = None,
) -> None:
    """Build and print the citation context for a question."""
    cfg = load_config_or_exit((ctx.obj or {}).get("log_level"))

    with open_runtime(resolve_db(db, cfg), cfg, web=not no_web) as rt:
        pack = rt.builder.build(
            user,
            message,
            company_id=company_id,
            company_name=company,
            company_website=website,
            company_description=description,
            founder_id=founder_id,
            founder_name=founder,
            include_web_search=not no_web,
        )

    if as_json:
        typer.echo(json.dumps(pack_to_json(pack, cfg.retrieval.snippet_chars), indent=2))
        return
    _print_pack(pack)


def ask_cmd(
    ctx: typer.Context,
    message: Annotated[str, typer.Argument(help="Question for the assistant.")],
    user: UserOpt,
    company_id: CompanyIdOpt = None,
    company: CompanyOpt = None,
    website: WebsiteOpt = None,
    description: DescriptionOpt = None,
    founder_id: FounderIdOpt = None,
    founder: FounderOpt = None,
    no_web: NoWebOpt = False,
    show_sources: Annotated[
        bool, typer.Option("--show-sources", help="Also print the citation list.")
    ] = False,
    db: DbOpt = None,
) -> None:
    """Answer a question with citations from internal and web sources."""
    cfg = load_config_or_exit((ctx.obj or {}).get("log_level"))
    require_api_key(cfg.assistant.model)

    sessions = SessionStore(
        max_sessions=cfg.sessions.max_sessions,
        ttl_seconds=cfg.sessions.ttl_seconds,
        max_messages=cfg.sessions.max_messages,
    )

    with open_runtime(resolve_db(db, cfg), cfg, web=not no_web) as rt:
        assistant = Assistant(rt.builder, sessions, cfg.assistant)
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            transient=True,
            console=console,
        ) as prog:
            prog.add_task("Thinking…", total=None)
            try:
                reply = assistant.ask(
                    user,
                    "cli",
                    message,
                    company_id=company_id,
                    company_name=company,
                    company_website=website,
                    company_description=description,
                    founder_id=founder_id,
                    founder_name=founder,
                    include_web_search=not no_web,
                )
            except Exception as exc:
                console.print(err_llm_failed(cfg.assistant.model, exc))
                raise typer.Exit(1)

    console.print(Markdown(reply.content))
    if show_sources and not reply.pack.is_empty:
        console.print(Panel(Text(reply.pack.citation_list), title="[bold]Sources[/]", expand=False))


def pack_to_json(pack: ContextPack, snippet_chars: int) -> dict:
    return {
        "internal_count": len(pack.internal_sources),
        "external_count": len(pack.external_sources),
        "citations": pack.citation_records(snippet_chars),
        "citation_list": pack.citation_list,
        "context_text": pack.context_text,
    }


def _print_pack(pack: ContextPack) -> None:
    if pack.is_empty:
        console.print("[yellow]No sources found.[/]")
        return
    console.print(
        Panel(
            Text(pack.citation_list),
            title=(
                f"[bold]Sources[/] [dim]({len(pack.internal_sources)} internal, "
                f"{len(pack.external_sources)} web)[/]"
            ),
            expand=False,
        )
    )
    console.print(pack.context_text, markup=False, highlight=False)
