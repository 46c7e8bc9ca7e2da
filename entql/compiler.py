"""Render a Query as SQL text and bound parameters."""

from typing import Any, Optional

from .connection import get_dialect
from .dialects import Dialect
from .expressions import STAR, Expression, FieldExpression, quote_identifier


def _render(value: Any) -> tuple[str, tuple[Any, ...]]:
    """Expressions render inline; anything else is a bound parameter."""
    if isinstance(value, Expression):
        return value.sql, value.values
    return "?", (value,)


def _table_source(query) -> tuple[str, tuple[Any, ...]]:
    if isinstance(query.table, Expression):
        sql, values = query.table.sql, query.table.values
    else:
        sql, values = quote_identifier(query.table), ()
    if query.alias:
        sql += f" AS {quote_identifier(query.alias)}"
    return sql, values


def _where_clause(query) -> tuple[str, tuple[Any, ...]]:
    if not query.where_expressions:
        return "", ()
    sql = " WHERE " + " AND ".join(expression.sql for expression in query.where_expressions)
    values = sum((expression.values for expression in query.where_expressions), ())
    return sql, values


def _compile_select(query, dialect: Dialect) -> tuple[str, tuple[Any, ...]]:
    params: tuple[Any, ...] = ()
    columns = []
    for field in query.field_expressions or (FieldExpression(name=STAR),):
        columns.append(field.sql)
        params += field.values
    sql = "SELECT "
    if query.modifiers:
        sql += " ".join(query.modifiers) + " "
    sql += ", ".join(columns)

    source, values = _table_source(query)
    sources = [source]
    params += values
    for table in query.from_tables:
        if isinstance(table, Expression):
            sources.append(table.sql)
            params += table.values
        else:
            sources.append(quote_identifier(table))
    sql += " FROM " + ", ".join(sources)

    for join in query.join_clauses:
        sql += " " + join.sql
        params += join.values

    where, values = _where_clause(query)
    sql += where
    params += values

    if query.group_expressions:
        sql += " GROUP BY " + ", ".join(expression.sql for expression in query.group_expressions)
        params += sum((expression.values for expression in query.group_expressions), ())
    if query.order_expressions:
        sql += " ORDER BY " + ", ".join(expression.sql for expression in query.order_expressions)
        params += sum((expression.values for expression in query.order_expressions), ())
    sql += dialect.pagination(query.limit_value, query.offset_value)
    return sql, params


def _compile_insert(query, dialect: Dialect) -> tuple[str, tuple[Any, ...]]:
    if isinstance(query.table, Expression):
        raise ValueError("Cannot insert into a generated table")
    table = quote_identifier(query.table)
    columns: list[str] = []
    for record in query.insert_values:
        columns.extend(column for column in record if column not in columns)
    if not columns:
        sql = f"INSERT INTO {table} DEFAULT VALUES"
        params: tuple[Any, ...] = ()
    else:
        params = ()
        rows = []
        for record in query.insert_values:
            placeholders = []
            for column in columns:
                placeholder, values = _render(record.get(column))
                placeholders.append(placeholder)
                params += values
            rows.append("(" + ", ".join(placeholders) + ")")
        sql = (f"INSERT INTO {table} (" + ", ".join(map(quote_identifier, columns)) + ") VALUES "
               + ", ".join(rows))
    if dialect.SUPPORTS_RETURNING:
        sql += " RETURNING *"
    return sql, params


def _compile_update(query, dialect: Dialect) -> tuple[str, tuple[Any, ...]]:
    if not query.set_values:
        raise ValueError("An update query needs at least one column to set")
    source, params = _table_source(query)
    assignments = []
    for column, value in query.set_values.items():
        placeholder, values = _render(value)
        assignments.append(f"{quote_identifier(column)} = {placeholder}")
        params += values
    sql = f"UPDATE {source} SET " + ", ".join(assignments)
    where, values = _where_clause(query)
    return sql + where, params + values


def _compile_delete(query, dialect: Dialect) -> tuple[str, tuple[Any, ...]]:
    source, params = _table_source(query)
    where, values = _where_clause(query)
    return f"DELETE FROM {source}" + where, params + values


_COMPILERS = {
    "select": _compile_select,
    "insert": _compile_insert,
    "update": _compile_update,
    "delete": _compile_delete,
}


def compile_query(query, dialect: Optional[Dialect] = None) -> tuple[str, tuple[Any, ...]]:
    """Return ``(sql, params)`` for a query, using ``?`` placeholders.

    ``dialect`` defaults to the one of the query's connection; it decides
    pagination syntax and whether inserts end with ``RETURNING *``.
    """
    if dialect is None:
        dialect = get_dialect(query.connection_name)
    try:
        compiler = _COMPILERS[query.type]
    except KeyError as error:
        raise ValueError(f"Unknown query type: {query.type}") from error
    return compiler(query, dialect)
