"""Shared wiring for CLI commands: config, logging, index, context builder."""

from __future__ import annotations

from contextlib import contextmanager
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path

import typer
from rich.console import Console

from dealflow.cli.errors import err_config, err_no_api_key, err_no_db, warn_no_web_search
from dealflow.config import ConfigError, DealflowConfig, load_config
from dealflow.logger import setup_logging
from dealflow.rag.context import ContextBuilder
from dealflow.rag.flywheel import FlywheelPersister
from dealflow.rag.index import LiteLLMReranker, SqliteSemanticIndex
from dealflow.rag.llm_client import provider_of, validate_api_key
from dealflow.rag.websearch import ExaClient

console = Console()


def load_config_or_exit(log_level: str | None = None) -> DealflowConfig:
    """Load config and install log handlers. *log_level* overrides the config."""
    try:
        cfg = load_config()
    except ConfigError as exc:
        console.print(err_config(str(exc)))
        raise typer.Exit(1)
    setup_logging(log_level or cfg.logging.level, cfg.logging.file)
    return cfg


def resolve_db(db: Path | None, cfg: DealflowConfig) -> Path:
    return db if db is not None else Path(cfg.index.db_path)


def require_api_key(model: str) -> None:
    try:
        validate_api_key(model)
    except EnvironmentError:
        console.print(err_no_api_key(provider_of(model)))
        raise typer.Exit(1)


def open_index_or_exit(db_path: Path, cfg: DealflowConfig) -> SqliteSemanticIndex:
    if not db_path.exists():
        console.print(err_no_db(str(db_path)))
        raise typer.Exit(1)
    return SqliteSemanticIndex.open(db_path, cfg.index.embedding_model)


@dataclass
class Runtime:
    index: SqliteSemanticIndex
    builder: ContextBuilder
    persister: FlywheelPersister | None


@contextmanager
def open_runtime(db_path: Path, cfg: DealflowConfig, web: bool = True) -> Iterator[Runtime]:
    """Open the index and build a ContextBuilder; flush the flywheel on exit."""
    require_api_key(cfg.index.embedding_model)
    index = open_index_or_exit(db_path, cfg)

    web_client = None
    if web and cfg.web_search.enabled:
        web_client = ExaClient.from_env(endpoint=cfg.web_search.endpoint)
        if web_client is None:
            console.print(warn_no_web_search())

    persister = None
    if web_client is not None and cfg.flywheel.enabled:
        persister = FlywheelPersister(
            index,
            max_documents=cfg.flywheel.max_documents,
            max_attempts=cfg.flywheel.max_attempts,
            backoff_seconds=cfg.flywheel.backoff_seconds,
            queue_size=cfg.flywheel.queue_size,
        )

    reranker = LiteLLMReranker(cfg.index.rerank_model) if cfg.index.rerank_model else None
    builder = ContextBuilder(
        index,
        web_client,
        reranker=reranker,
        persister=persister,
        retrieval=cfg.retrieval,
        web=cfg.web_search,
    )
    try:
        yield Runtime(index=index, builder=builder, persister=persister)
    finally:
        if persister is not None:
            persister.close(timeout=30.0)
        index.close()
