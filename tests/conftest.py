"""Shared pytest fixtures."""

from __future__ import annotations

import pytest

from dealflow.db.connection import DEFAULT_DB_NAME, open_index_db


@pytest.fixture
def db_path(tmp_path):
    """Path to a not-yet-created index file inside tmp_path."""
    return tmp_path / DEFAULT_DB_NAME


@pytest.fixture
def tmp_db(db_path):
    """Schema-ready connection on db_path, closed after the test."""
    conn = open_index_db(db_path)
    yield conn
    conn.close()
