"""dealflow init — create the local index and config files.

Creates:
  .dealflow.db             — empty index database with schema
  dealflow.yaml            — project config (commented defaults)
  ~/.dealflow/config.yaml  — global model config (created once, mode 0o600)
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from dealflow.config import ensure_global_config
from dealflow.db.connection import open_index_db

console = Console()

_DEFAULT_PROJECT_DIR = Path(".")
_DB_NAME = ".dealflow.db"


def init_cmd(
    project_dir: Annotated[
        Path,
        typer.Argument(help="Directory to initialize. Defaults to current directory."),
    ] = _DEFAULT_PROJECT_DIR,
    global_config: Annotated[
        Path | None,
        typer.Option("--global-config", hidden=True, help="Override global config path (for testing)."),
    ] = None,
) -> None:
    """Create the index database and config files."""
    project_dir = project_dir.resolve()
    project_dir.mkdir(parents=True, exist_ok=True)

    db_path = project_dir / _DB_NAME
    if db_path.exists():
        console.print(f"[yellow]⚠[/]  {db_path} already exists; schema is brought up to date.")

    _create_database(db_path)
    _create_dealflow_yaml(project_dir)
    _update_gitignore(project_dir)

    cfg_path = ensure_global_config(global_config)
    console.print(f"  [green]✓[/] {cfg_path} (global config)")

    console.print("\n[bold green]✓ Dealflow initialized.[/]")
    console.print("\nNext steps:")
    console.print("  1. export OPENAI_API_KEY=...  EXA_API_KEY=...")
    console.print("  2. dealflow add-note --user <id> --title <title> --text <note>")
    console.print('  3. dealflow ask --user <id> --company "Acme" "What do they sell?"')


def _create_database(db_path: Path) -> None:
    open_index_db(db_path).close()
    console.print(f"  [green]✓[/] {db_path.name}")


def _create_dealflow_yaml(project_dir: Path) -> None:
    target = project_dir / "dealflow.yaml"
    if target.exists():
        console.print("  [dim]dealflow.yaml exists, left unchanged[/]")
        return
    content = (
        "index:\n"
        f"  db_path: {_DB_NAME}\n"
        "\n"
        "# web_search:\n"
        "#   enabled: true\n"
        "#   max_queries: 5\n"
        "#   query_timeout: 30\n"
        "\n"
        "# retrieval:\n"
        "#   top_k: 15\n"
        "#   internal_floor: 6\n"
        "\n"
        "# flywheel:\n"
        "#   enabled: true\n"
        "#   max_documents: 3\n"
        "\n"
        "# logging:\n"
        "#   level: INFO\n"
        "#   file: logs/dealflow.log\n"
    )
    target.write_text(content, encoding="utf-8")
    console.print("  [green]✓[/] dealflow.yaml")


def _update_gitignore(project_dir: Path) -> None:
    """Add the database to .gitignore if one already exists."""
    gitignore = project_dir / ".gitignore"
    entries = [_DB_NAME, f"{_DB_NAME}-wal", f"{_DB_NAME}-shm"]

    if gitignore.exists():
        existing = gitignore.read_text(encoding="utf-8").splitlines()
        to_add = [e for e in entries if e not in existing]
        if to_add:
            with gitignore.open("a", encoding="utf-8") as f:
                f.write("\n# Dealflow\n")
                for entry in to_add:
                    f.write(f"{entry}\n")
            console.print("  [green]✓[/] .gitignore (updated with Dealflow entries)")
