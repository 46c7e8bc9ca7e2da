"""PostgreSQL dialect."""

from typing import ClassVar

from .base import Dialect


class PostgresDialect(Dialect):
    """PostgreSQL through psycopg2, which opens transactions implicitly."""

    SUPPORTED_SCHEMA: ClassVar[tuple[str, ...]] = ("postgresql", "postgres")
    PLACEHOLDER: ClassVar[str] = "%s"

    def connect(self, url: str):
        import psycopg2  # pylint: disable=import-outside-toplevel,import-error
        return psycopg2.connect(**self._parse_url(url))
