"""Running queries: execution modes, prepares, post-query steps and transforms."""

import logging
import threading
from contextlib import contextmanager
from typing import Any, Optional

from .compiler import compile_query
from .connection import DEFAULT_CONNECTION_NAME
from .expressions import quote_identifier
from .transaction import execute
from .utils.is_entity import is_entity

logger = logging.getLogger("entql")

SQL_ONLY = "sql-only"
DRY_RUN = "dry-run"
QUERY_ONLY = "query-only"
MODES = (SQL_ONLY, DRY_RUN, QUERY_ONLY)

_local = threading.local()


def current_mode() -> Optional[str]:
    """Execution mode bound in this thread, or None for normal execution."""
    return getattr(_local, "mode", None)


@contextmanager
def _bind_mode(mode: Optional[str]):
    if mode is not None and mode not in MODES:
        raise ValueError(f"Unknown execution mode: {mode!r}")
    previous = current_mode()
    _local.mode = mode
    try:
        yield
    finally:
        _local.mode = previous


def sql_only():
    """Within this block, ``exec()`` returns the SQL string instead of running it."""
    return _bind_mode(SQL_ONLY)


def dry_run():
    """Within this block, ``exec()`` prints the SQL and returns a fake row keyed by primary key 1.

    The fake row still goes through post-query steps and transforms, so
    nested relation selects are dry-run as well.
    """
    return _bind_mode(DRY_RUN)


def query_only():
    """Within this block, ``exec()`` returns the (prepared) Query without running it."""
    return _bind_mode(QUERY_ONLY)


def _get_entity_hooks(query, name: str) -> tuple:
    if is_entity(query.entity):
        return tuple(getattr(query.entity, name, ()) or ())
    return ()


def _prepare_record(prepares, record: dict) -> dict:
    for prepare in prepares:
        record = prepare(record)
    return record


def apply_prepares(query):
    """Run the entity's prepare functions over the data an insert or update writes."""
    prepares = _get_entity_hooks(query, "prepares")
    if not prepares:
        return query
    if query.type == "insert":
        return query.clone_query_with(
            insert_values=tuple(_prepare_record(prepares, dict(record)) for record in query.insert_values))
    if query.type == "update":
        return query.clone_query_with(set_values=_prepare_record(prepares, dict(query.set_values)))
    return query


def apply_posts(query, rows: list[dict]) -> list[dict]:
    """Run post-query steps over fetched rows, in the order they were registered."""
    for post in query.post_queries:
        rows = post(rows)
    return rows


def apply_transforms(query, rows: list[dict]) -> list[dict]:
    """Run the entity's transform functions over every fetched row (selects only)."""
    if query.type != "select":
        return rows
    for transform in _get_entity_hooks(query, "transforms"):
        rows = [transform(row) for row in rows]
    return rows


def exec_query(query) -> Any:
    """Execute ``query`` according to the current mode.

    Returns, in normal mode: a list of row dicts for selects, the generated row
    for inserts (all returned rows when ``results="results"``), and the number
    of affected rows for updates and deletes.
    """
    query = apply_prepares(query)
    if query.sql_override is not None:
        return query.sql_override
    mode = current_mode()
    if mode == QUERY_ONLY:
        return query
    sql, params = compile_query(query)
    if mode == SQL_ONLY:
        return sql
    if mode == DRY_RUN:
        print("dry run ::", sql, "::", list(params))
        logger.debug("dry run :: %s :: %s", sql, list(params))
        rows = apply_transforms(query, apply_posts(query, [{query.pk: 1}]))
        if query.type == "insert" and query.results == "keys":
            return rows[0]
        return rows

    result = execute(sql, params, connection_name=query.connection_name)
    if query.type == "select":
        return apply_transforms(query, apply_posts(query, result.rows or []))
    if query.type == "insert":
        if query.results == "results":
            return result.rows or []
        if result.rows:
            return result.rows[-1]
        return {query.pk: result.lastrowid}
    return result.rowcount


def exec_raw(sql: str, params=None, with_results: bool = False,
             connection_name: str = DEFAULT_CONNECTION_NAME) -> Any:
    """Run SQL verbatim (``?`` placeholders); returns rows when ``with_results``, else the row count."""
    result = execute(sql, tuple(params or ()), connection_name=connection_name)
    if with_results:
        return result.rows or []
    return result.rowcount


def pg_schema(schema: str, connection_name: str = DEFAULT_CONNECTION_NAME) -> None:
    """Make PostgreSQL resolve unqualified tables in ``schema``, then ``public``."""
    exec_raw(f"SET search_path TO {quote_identifier(schema)},public", connection_name=connection_name)
