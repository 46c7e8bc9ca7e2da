"""MySQL dialect."""

from typing import ClassVar

from .base import Dialect


class MysqlDialect(Dialect):
    """MySQL through pymysql; no ``RETURNING``, generated keys come from ``lastrowid``."""

    SUPPORTED_SCHEMA: ClassVar[tuple[str, ...]] = ("mysql",)
    PLACEHOLDER: ClassVar[str] = "%s"
    SUPPORTS_RETURNING: ClassVar[bool] = False

    def connect(self, url: str):
        import pymysql  # pylint: disable=import-outside-toplevel,import-error
        parameters = self._parse_url(url)
        connection = pymysql.connect(**{**parameters, "port": parameters["port"] or 3306})
        # identifiers are emitted with ANSI double quotes
        with connection.cursor() as cursor:
            cursor.execute("SET SESSION sql_mode = CONCAT(@@sql_mode, ',ANSI_QUOTES')")
        return connection

    def pagination(self, limit, offset) -> str:
        # OFFSET is only valid after a LIMIT
        if offset is not None and limit is None:
            limit = 18446744073709551615
        return super().pagination(limit, offset)
