"""SQLite dialect."""

import logging
import urllib.parse
from typing import ClassVar

from .base import Dialect

logger = logging.getLogger(__name__)


class SqliteDialect(Dialect):
    """SQLite through the standard library driver.

    ``sqlite:///relative/path``, ``sqlite:////absolute/path``; no path means
    an in-memory database.
    """

    SUPPORTED_SCHEMA: ClassVar[tuple[str, ...]] = ("sqlite",)

    def connect(self, url: str):
        import sqlite3
        parsed = urllib.parse.urlparse(url)
        path = parsed.path[1:] or parsed.hostname or ":memory:"
        logger.debug("Connecting to SQLite database %s", path)
        # autocommit outside of transactions; begin() opens them explicitly
        connection = sqlite3.connect(path, check_same_thread=False, isolation_level=None)
        connection.execute("PRAGMA foreign_keys = ON")
        return connection

    def begin(self, connection) -> None:
        connection.execute("BEGIN")

    def pagination(self, limit, offset) -> str:
        # OFFSET is only valid after a LIMIT; -1 means no limit
        if offset is not None and limit is None:
            limit = -1
        return super().pagination(limit, offset)
