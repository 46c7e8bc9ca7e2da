"""Base Dialect type: subclasses implement connect() for each engine."""

import urllib.parse
from abc import ABC, abstractmethod
from typing import Any, ClassVar, Optional

from pydantic import BaseModel


class Dialect(BaseModel, ABC):
    """Base for database dialects; subclasses implement connect() for a given URL."""

    model_config = {"arbitrary_types_allowed": True}

    SUPPORTED_SCHEMA: ClassVar[tuple[str, ...]] = ()
    """URL schemes this dialect handles (e.g. ('sqlite',), ('mssql', 'sqlserver'))."""

    PLACEHOLDER: ClassVar[str] = "?"
    """Bound-parameter marker the driver expects (DB-API ``paramstyle``)."""

    SUPPORTS_RETURNING: ClassVar[bool] = True
    """Whether ``INSERT ... RETURNING *`` can report generated keys."""

    def format_sql(self, sql: str) -> str:
        """Translate compiled SQL (``?`` placeholders) to the driver's paramstyle."""
        if self.PLACEHOLDER == "?":
            return sql
        return sql.replace("%", "%%").replace("?", self.PLACEHOLDER)

    def pagination(self, limit: Optional[int], offset: Optional[int]) -> str:
        """SQL suffix for LIMIT/OFFSET (empty when neither is set)."""
        sql = ""
        if limit is not None:
            sql += f" LIMIT {int(limit)}"
        if offset is not None:
            sql += f" OFFSET {int(offset)}"
        return sql

    @staticmethod
    def _parse_url(url: str) -> dict[str, Any]:
        """Driver keyword arguments for a server URL (host, port, credentials, database)."""
        parsed = urllib.parse.urlparse(url)
        return {
            "host": parsed.hostname,
            "port": parsed.port,
            "user": urllib.parse.unquote(parsed.username) if parsed.username else None,
            "password": urllib.parse.unquote(parsed.password) if parsed.password else None,
            "database": parsed.path.lstrip("/") or None,
        }

    def begin(self, connection: Any) -> None:
        """Open a transaction on ``connection``; most drivers do it implicitly."""

    @abstractmethod
    def connect(self, url: str) -> Any:
        """Return a new raw driver connection for the given URL.

        The return value is engine-specific (e.g. sqlite3.Connection, pymysql.Connection).
        """
        ...  # pylint: disable=unnecessary-ellipsis
