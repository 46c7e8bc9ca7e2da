"""Database dialects: one class per engine, looked up by URL scheme."""

from .base import Dialect
from .sqlite import SqliteDialect
from .mysql import MysqlDialect
from .postgres import PostgresDialect
from .sqlserver import SqlserverDialect

_DIALECTS_BY_SCHEME: dict[str, type[Dialect]] = {
    scheme: dialect_cls
    for dialect_cls in (SqliteDialect, MysqlDialect, PostgresDialect, SqlserverDialect)
    for scheme in dialect_cls.SUPPORTED_SCHEMA
}


def get_dialect_for_scheme(scheme: str) -> Dialect:
    """Return the dialect of a URL scheme; a driver suffix is ignored (``postgresql+psycopg2``)."""
    try:
        return _DIALECTS_BY_SCHEME[(scheme or "").split("+")[0].lower()]()
    except KeyError as error:
        raise ValueError(f"Unsupported database scheme: {scheme}") from error


__all__ = [
    "Dialect",
    "SqliteDialect",
    "MysqlDialect",
    "PostgresDialect",
    "SqlserverDialect",
    "get_dialect_for_scheme",
]
