"""dealflow local index database layer."""

from dealflow.db.connection import Database, open_index_db
from dealflow.db.migrations import MIGRATIONS, run_migrations
from dealflow.db.schema import initialize
from dealflow.db.vectors import ensure_vec_table, model_to_slug, vec_table_name

__all__ = [
    "Database",
    "open_index_db",
    "initialize",
    "run_migrations",
    "MIGRATIONS",
    "ensure_vec_table",
    "model_to_slug",
    "vec_table_name",
]
