"""SQL Server dialect."""

from typing import ClassVar

from .base import Dialect


class SqlserverDialect(Dialect):
    """SQL Server through pyodbc (ODBC Driver 17)."""

    SUPPORTED_SCHEMA: ClassVar[tuple[str, ...]] = ("mssql", "sqlserver")
    SUPPORTS_RETURNING: ClassVar[bool] = False

    def connect(self, url: str):
        import pyodbc  # pylint: disable=import-outside-toplevel,import-error
        parameters = self._parse_url(url)
        server = parameters["host"] or "localhost"
        if parameters["port"] and parameters["port"] != 1433:
            server += f",{parameters['port']}"
        return pyodbc.connect(";".join((
            "DRIVER={ODBC Driver 17 for SQL Server}",
            f"SERVER={server}",
            f"DATABASE={parameters['database'] or ''}",
            f"UID={parameters['user'] or ''}",
            f"PWD={parameters['password'] or ''}",
        )))

    def pagination(self, limit, offset) -> str:
        """OFFSET ... FETCH, which SQL Server only accepts after an ORDER BY."""
        if limit is None and offset is None:
            return ""
        sql = f" OFFSET {int(offset or 0)} ROWS"
        if limit is not None:
            sql += f" FETCH NEXT {int(limit)} ROWS ONLY"
        return sql
