"""Dealflow rich error messages — actionable feedback.

Every error shown to the user must contain:
  1. What went wrong (clear cause)
  2. The exact action the user should take to fix it

Usage:
    from dealflow.cli.errors import err_no_api_key, err_no_db
    console.print(err_no_api_key("openai"))
    raise typer.Exit(1)
"""

from __future__ import annotations

from dealflow.rag.llm_client import _PROVIDER_ENV


def err_no_api_key(provider: str) -> str:
    """No API key for *provider*.

    Example:
        No API key for 'openai'. Set:  export OPENAI_API_KEY=sk-...
    """
    env_var = _PROVIDER_ENV.get(provider.lower()) or f"{provider.upper()}_API_KEY"
    return (
        f"[red]Error:[/] No API key for '{provider}'.\n"
        f"  Set:  export {env_var}=sk-..."
    )


def err_no_db(db_path: str = ".dealflow.db") -> str:
    """No index database at *db_path*."""
    return (
        f"[red]Error:[/] No database found at '{db_path}'.\n"
        "  Run:  dealflow init"
    )


def err_config(message: str) -> str:
    """Config file is invalid or contains a forbidden key."""
    return f"[red]Error:[/] {message}"


def err_empty_note() -> str:
    return (
        "[red]Error:[/] Note is empty.\n"
        "  Pass text with --text or a file with --file."
    )


def err_file_not_found(path: str) -> str:
    return (
        f"[red]Error:[/] File not found: '{path}'\n"
        "  Check the path and try again."
    )


def err_llm_failed(model: str, exc: Exception) -> str:
    """The chat model call failed after retries."""
    return (
        f"[red]Error:[/] Model '{model}' failed: {exc}\n"
        "  Check your API key and network, or pick another model:\n"
        "    export DEALFLOW_GENERATION_MODEL=<provider/model>"
    )


def warn_no_web_search() -> str:
    """EXA_API_KEY not set — running with internal sources only."""
    return (
        "[yellow]Warning:[/] EXA_API_KEY not set — web search disabled.\n"
        "  Set:  export EXA_API_KEY=<key>  to add live web sources."
    )


def warn_no_feed_items(count: int) -> str:
    return (
        f"[yellow]No matching news items[/] in {count} feed(s).\n"
        "  Try fewer --keyword filters."
    )
