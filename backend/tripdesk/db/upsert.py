"""
Dialect-aware single-statement writes for the derived tables.
INSERT ... ON CONFLICT on SQLite and PostgreSQL.
"""

from typing import Any, Dict, Iterable

from sqlalchemy.dialects import postgresql, sqlite


def _insert_for(dialect_name: str):
    if dialect_name == "postgresql":
        return postgresql.insert
    if dialect_name == "sqlite":
        return sqlite.insert
    raise NotImplementedError(f"Upsert not supported for dialect '{dialect_name}'")


def upsert_stmt(dialect_name: str, table, values: Dict[str, Any], index_elements: Iterable[str], update_columns: Dict[str, Any] = None):
    """
    Build an upsert keyed on index_elements. update_columns defaults to every
    non-key value; pass SQL expressions (e.g. table.c.version + 1) to override.
    """
    insert = _insert_for(dialect_name)
    keys = list(index_elements)
    stmt = insert(table).values(**values)
    if update_columns is None:
        update_columns = {k: stmt.excluded[k] for k in values if k not in keys}
    return stmt.on_conflict_do_update(index_elements=keys, set_=update_columns)


def insert_ignore_stmt(dialect_name: str, table, values: Dict[str, Any]):
    """Insert that silently skips rows violating a unique constraint."""
    insert = _insert_for(dialect_name)
    return insert(table).values(**values).on_conflict_do_nothing()
