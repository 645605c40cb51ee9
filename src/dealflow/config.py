"""Dealflow configuration loader.

Priority (high → low):
  1. CLI flags           (handled at call site — not in this module)
  2. Environment variables  (DEALFLOW_GENERATION_MODEL, DEALFLOW_EMBEDDING_MODEL,
                             DEALFLOW_RERANK_MODEL, DEALFLOW_LOG_LEVEL)
  3. Per-project dealflow.yaml
  4. Global ~/.dealflow/config.yaml  (defaults only — no API keys)
  5. Hardcoded defaults

Global config must never contain API keys (EXA_API_KEY, OPENAI_API_KEY, ...);
use environment variables instead. All YAML reads use yaml.safe_load().
"""

from __future__ import annotations

import os
import re
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_GLOBAL_CONFIG_DIR: Path = Path.home() / ".dealflow"
_GLOBAL_CONFIG_PATH: Path = _GLOBAL_CONFIG_DIR / "config.yaml"
_PROJECT_CONFIG_NAME: str = "dealflow.yaml"

# Fields that suggest an API key; forbidden in global config.
# Does NOT match legitimate config keys like max_tokens or num_results.
_API_KEY_RE: re.Pattern[str] = re.compile(
    r"api[_\-]?(?:key|secret)"  # api_key, api-key, api_secret, apikey
    r"|_token$"                  # access_token, auth_token (suffix)
    r"|^token$"                  # exactly "token" (standalone)
    r"|_secret$"                 # client_secret (suffix)
    r"|^secret$"                 # exactly "secret" (standalone)
    r"|passw(?:ord|d)"           # password, passwd
    r"|credential",              # credential, credentials
    re.IGNORECASE,
)

_KNOWN_SECTIONS: frozenset[str] = frozenset(
    ["index", "web_search", "retrieval", "flywheel", "assistant", "sessions", "news", "logging"]
)


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class ConfigError(ValueError):
    """Raised when a config file contains an invalid or forbidden value."""


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------


@dataclass
class IndexCfg:
    """Local semantic index (dealflow.yaml: index:)."""

    db_path: str = ".dealflow.db"
    embedding_model: str = "openai/text-embedding-3-small"
    rerank_model: str | None = "cohere/rerank-english-v3.0"


@dataclass
class WebSearchCfg:
    """Live web search (dealflow.yaml: web_search:).

    Attributes:
        enabled: Master switch; when False only internal sources are used.
        endpoint: Exa-compatible search endpoint.
        num_results: Results requested per query.
        text_max_chars: Max page text returned per result.
        highlight_sentences: Highlight sentences requested per result.
        max_queries: Queries issued per retrieval.
        max_sources: Web sources kept after filtering and dedup.
        concurrency: Queries in flight at once.
        query_timeout: Seconds the whole fan-out may take.
    """

    enabled: bool = True
    endpoint: str = "https://api.exa.ai/search"
    num_results: int = 4
    text_max_chars: int = 1_500
    highlight_sentences: int = 5
    max_queries: int = 5
    max_sources: int = 10
    concurrency: int = 5
    query_timeout: float = 30.0


@dataclass
class RetrievalCfg:
    """Internal retrieval and formatting (dealflow.yaml: retrieval:)."""

    top_k: int = 15
    internal_floor: int = 6
    snippet_chars: int = 500


@dataclass
class FlywheelCfg:
    """Write-back of web sources into the index (dealflow.yaml: flywheel:)."""

    enabled: bool = True
    max_documents: int = 3
    max_attempts: int = 3
    backoff_seconds: float = 0.5
    queue_size: int = 64


@dataclass
class AssistantCfg:
    """Chat completion settings (dealflow.yaml: assistant:)."""

    model: str = "openai/gpt-4o"
    temperature: float = 0.7
    max_tokens: int = 2_048


@dataclass
class SessionsCfg:
    """Conversation memory bounds (dealflow.yaml: sessions:)."""

    max_sessions: int = 256
    ttl_seconds: float = 3_600.0
    max_messages: int = 40


@dataclass
class NewsCfg:
    """Remote news feeds (dealflow.yaml: news:)."""

    cache_ttl_seconds: float = 900.0
    timeout: float = 15.0


@dataclass
class LoggingCfg:
    """Log output (dealflow.yaml: logging:)."""

    level: str = "WARNING"
    file: str | None = None


@dataclass
class DealflowConfig:
    """Root configuration object, built by load_config() from merged YAML layers."""

    index: IndexCfg = field(default_factory=IndexCfg)
    web_search: WebSearchCfg = field(default_factory=WebSearchCfg)
    retrieval: RetrievalCfg = field(default_factory=RetrievalCfg)
    flywheel: FlywheelCfg = field(default_factory=FlywheelCfg)
    assistant: AssistantCfg = field(default_factory=AssistantCfg)
    sessions: SessionsCfg = field(default_factory=SessionsCfg)
    news: NewsCfg = field(default_factory=NewsCfg)
    logging: LoggingCfg = field(default_factory=LoggingCfg)


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------


def _check_no_api_keys(data: dict[str, Any], source: Path) -> None:
    """Raise ConfigError if *data* contains any API-key-like key names."""

    def _scan(obj: Any, path: str) -> None:
        if isinstance(obj, dict):
            for k, v in obj.items():
                full = f"{path}.{k}" if path else k
                if _API_KEY_RE.search(str(k)):
                    raise ConfigError(
                        f"Global config '{source}' contains a forbidden key '{full}'.\n"
                        f"  API keys must be set via environment variables, not config files.\n"
                        f"  Remove '{full}' from {source.name} and use:\n"
                        f"    export {str(k).upper().replace('-', '_')}=<value>"
                    )
                _scan(v, full)

    _scan(data, "")


def _warn_unknown_keys(data: dict[str, Any], source: Path) -> None:
    """Emit a UserWarning for unrecognised top-level keys."""
    for key in data:
        if key not in _KNOWN_SECTIONS:
            warnings.warn(
                f"Unknown config key '{key}' in '{source}' — ignored.",
                UserWarning,
                stacklevel=4,
            )


def _require_mapping(data: Any, source: Path) -> dict[str, Any]:
    if not isinstance(data, dict):
        raise ConfigError(f"Config file '{source}' must contain a YAML mapping.")
    return data


# ---------------------------------------------------------------------------
# Merge + build
# ---------------------------------------------------------------------------


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Return a new dict that is *base* deep-merged with *override*."""
    result = dict(base)
    for k, v in override.items():
        if k in result and isinstance(result[k], dict) and isinstance(v, dict):
            result[k] = _deep_merge(result[k], v)
        else:
            result[k] = v
    return result


def _cfg_from_dict(data: dict[str, Any]) -> DealflowConfig:
    """Build a *DealflowConfig* from a merged raw YAML dict."""
    cfg = DealflowConfig()

    if "index" in data:
        ix = data["index"] or {}
        rerank = ix.get("rerank_model", cfg.index.rerank_model)
        cfg.index = IndexCfg(
            db_path=str(ix.get("db_path", cfg.index.db_path)),
            embedding_model=str(ix.get("embedding_model", cfg.index.embedding_model)),
            rerank_model=str(rerank) if rerank else None,
        )

    if "web_search" in data:
        w = data["web_search"] or {}
        d = cfg.web_search
        cfg.web_search = WebSearchCfg(
            enabled=bool(w.get("enabled", d.enabled)),
            endpoint=str(w.get("endpoint", d.endpoint)),
            num_results=int(w.get("num_results", d.num_results)),
            text_max_chars=int(w.get("text_max_chars", d.text_max_chars)),
            highlight_sentences=int(w.get("highlight_sentences", d.highlight_sentences)),
            max_queries=int(w.get("max_queries", d.max_queries)),
            max_sources=int(w.get("max_sources", d.max_sources)),
            concurrency=int(w.get("concurrency", d.concurrency)),
            query_timeout=float(w.get("query_timeout", d.query_timeout)),
        )

    if "retrieval" in data:
        r = data["retrieval"] or {}
        cfg.retrieval = RetrievalCfg(
            top_k=int(r.get("top_k", cfg.retrieval.top_k)),
            internal_floor=int(r.get("internal_floor", cfg.retrieval.internal_floor)),
            snippet_chars=int(r.get("snippet_chars", cfg.retrieval.snippet_chars)),
        )

    if "flywheel" in data:
        f = data["flywheel"] or {}
        cfg.flywheel = FlywheelCfg(
            enabled=bool(f.get("enabled", cfg.flywheel.enabled)),
            max_documents=int(f.get("max_documents", cfg.flywheel.max_documents)),
            max_attempts=int(f.get("max_attempts", cfg.flywheel.max_attempts)),
            backoff_seconds=float(f.get("backoff_seconds", cfg.flywheel.backoff_seconds)),
            queue_size=int(f.get("queue_size", cfg.flywheel.queue_size)),
        )

    if "assistant" in data:
        a = data["assistant"] or {}
        cfg.assistant = AssistantCfg(
            model=str(a.get("model", cfg.assistant.model)),
            temperature=float(a.get("temperature", cfg.assistant.temperature)),
            max_tokens=int(a.get("max_tokens", cfg.assistant.max_tokens)),
        )

    if "sessions" in data:
        s = data["sessions"] or {}
        cfg.sessions = SessionsCfg(
            max_sessions=int(s.get("max_sessions", cfg.sessions.max_sessions)),
            ttl_seconds=float(s.get("ttl_seconds", cfg.sessions.ttl_seconds)),
            max_messages=int(s.get("max_messages", cfg.sessions.max_messages)),
        )

    if "news" in data:
        n = data["news"] or {}
        cfg.news = NewsCfg(
            cache_ttl_seconds=float(n.get("cache_ttl_seconds", cfg.news.cache_ttl_seconds)),
            timeout=float(n.get("timeout", cfg.news.timeout)),
        )

    if "logging" in data:
        lg = data["logging"] or {}
        cfg.logging = LoggingCfg(
            level=str(lg.get("level", cfg.logging.level)).upper(),
            file=lg.get("file") or cfg.logging.file,
        )

    return cfg


def _apply_env_overrides(cfg: DealflowConfig) -> DealflowConfig:
    """Apply DEALFLOW_* environment variable overrides."""
    if model := os.environ.get("DEALFLOW_GENERATION_MODEL"):
        cfg.assistant.model = model
    if model := os.environ.get("DEALFLOW_EMBEDDING_MODEL"):
        cfg.index.embedding_model = model
    if model := os.environ.get("DEALFLOW_RERANK_MODEL"):
        cfg.index.rerank_model = model
    if level := os.environ.get("DEALFLOW_LOG_LEVEL"):
        cfg.logging.level = level.upper()
    return cfg


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(
    project_dir: Path | None = None,
    *,
    global_config_path: Path | None = None,
) -> DealflowConfig:
    """Load and return a merged *DealflowConfig*.

    Applies layers in order: global → per-project → env vars.
    CLI flag overrides must be applied by the caller after this function.

    Args:
        project_dir: Directory to search for *dealflow.yaml*. Defaults to CWD.
        global_config_path: Override the global config path (for testing).

    Raises:
        ConfigError: If global config contains API-key-like fields or a
            config file is not a mapping.
    """
    global_path = global_config_path if global_config_path is not None else _GLOBAL_CONFIG_PATH
    search_dir = project_dir if project_dir is not None else Path.cwd()

    merged: dict[str, Any] = {}

    # Layer 1: global config
    if global_path.exists():
        raw_global = yaml.safe_load(global_path.read_text(encoding="utf-8")) or {}
        raw_global = _require_mapping(raw_global, global_path)
        _check_no_api_keys(raw_global, global_path)
        _warn_unknown_keys(raw_global, global_path)
        merged = _deep_merge(merged, raw_global)

    # Layer 2: per-project config
    project_cfg_path = search_dir / _PROJECT_CONFIG_NAME
    if project_cfg_path.exists():
        raw_project = yaml.safe_load(project_cfg_path.read_text(encoding="utf-8")) or {}
        raw_project = _require_mapping(raw_project, project_cfg_path)
        _warn_unknown_keys(raw_project, project_cfg_path)
        merged = _deep_merge(merged, raw_project)

    cfg = _cfg_from_dict(merged)

    # Layer 3: env var overrides
    return _apply_env_overrides(cfg)


def ensure_global_config(
    global_config_path: Path | None = None,
) -> Path:
    """Create ``~/.dealflow/config.yaml`` with defaults if it does not exist.

    Creates parent directory with mode 0o700 and the config file with
    mode 0o600 (owner-readable only).

    Returns:
        Path to the global config file.
    """
    target = global_config_path if global_config_path is not None else _GLOBAL_CONFIG_PATH
    target.parent.mkdir(mode=0o700, parents=True, exist_ok=True)

    if not target.exists():
        content = (
            "# Dealflow global configuration: defaults only.\n"
            "# NEVER store API keys here. Use environment variables:\n"
            "#   export OPENAI_API_KEY=sk-...\n"
            "#   export EXA_API_KEY=...\n"
            "\n"
            "index:\n"
            "  embedding_model: openai/text-embedding-3-small\n"
            "  rerank_model: cohere/rerank-english-v3.0\n"
            "\n"
            "assistant:\n"
            "  model: openai/gpt-4o\n"
        )
        target.write_text(content, encoding="utf-8")
        target.chmod(0o600)

    return target
