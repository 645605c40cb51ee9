"""Fixtures shared by CLI tests."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

import pytest


@pytest.fixture(autouse=True)
def cli_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    """Run each CLI test in tmp_path with no user config, keys or log handlers."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr("dealflow.config._GLOBAL_CONFIG_PATH", tmp_path / "home" / "config.yaml")
    for name in (
        "EXA_API_KEY",
        "DEALFLOW_GENERATION_MODEL",
        "DEALFLOW_EMBEDDING_MODEL",
        "DEALFLOW_RERANK_MODEL",
        "DEALFLOW_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)
    with patch("dealflow.cli.runtime.setup_logging"):
        yield tmp_path
