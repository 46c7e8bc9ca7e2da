"""Immutable query model and the operators that compose it.

A :class:`Query` describes one SELECT, INSERT, UPDATE or DELETE. Every operator
returns a new Query; nothing is executed until :meth:`Query.exec` is called, and
what ``exec`` does then depends on the execution mode (see ``entql.execution``).

Field names given as strings are qualified with the query's table when they are
added (``"name"`` becomes ``"users"."name"``), except for aliases the query itself
introduced. Relation expansion (:meth:`Query.with_`) registers post-query steps
that fetch related rows once the main query has run.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Literal, Optional

from pydantic import BaseModel, Field

from .connection import DEFAULT_CONNECTION_NAME
from .expressions import (
    STAR,
    AliasedExpression,
    Expression,
    FieldExpression,
    FunctionExpression,
    OrderExpression,
    RawExpression,
    SubQueryExpression,
    map_fields,
    quote_identifier,
)
from .relations import (
    MANY_TO_MANY_RELATION_TYPES,
    ConfigurationError,
    Relation,
    get_rel,
)
from .utils.is_entity import is_entity
from .utils.make_hashable import make_hashable

logger = logging.getLogger("entql")

# Django-style lookup -> Expression method for Query.where(**kwargs).
_WHERE_LOOKUP_MAP: dict[str, str] = {
    "exact": "__eq__",
    "iexact": "_iexact",
    "ne": "__ne__",
    "lt": "__lt__",
    "lte": "__le__",
    "gt": "__gt__",
    "gte": "__ge__",
    "in": "in_",
    "not_in": "not_in",
    "range": "between",
    "isnull": "_isnull",
    "icontains": "icontains",
    "contains": "contains",
    "istartswith": "istartswith",
    "startswith": "startswith",
    "iendswith": "iendswith",
    "endswith": "endswith",
    "like": "like",
    "ilike": "ilike",
}

# Operators accepted in (operator, value) pairs, e.g. where({"name": ("like", "chris%")}).
_PAIR_OPERATORS: dict[str, str] = {
    "=": "__eq__",
    "!=": "__ne__",
    "not=": "__ne__",
    "<": "__lt__",
    "<=": "__le__",
    ">": "__gt__",
    ">=": "__ge__",
    "in": "in_",
    "not in": "not_in",
    "like": "like",
    "ilike": "ilike",
    "between": "between",
}

_JOIN_KINDS = ("left", "right", "inner", "outer", "full", "cross")

ALL_COLUMNS = FieldExpression(table=None, name=STAR)
"""Projection placeholder meaning "every column"; replaced by the first explicit fields()."""

QueryType = Literal["select", "update", "delete", "insert"]


def _is_all_columns(item: Any) -> bool:
    return isinstance(item, FieldExpression) and item.table is None and item.name == STAR


class Join(BaseModel):
    """One JOIN clause: kind, joined table (or generated table and alias), ON predicates."""

    model_config = {"arbitrary_types_allowed": True, "frozen": True}

    kind: str = "left"
    table: Any
    alias: Optional[str] = None
    on: tuple[Expression, ...] = ()

    @property
    def sql(self) -> str:
        if isinstance(self.table, Expression):
            source = self.table.sql
        else:
            source = quote_identifier(self.table)
        if self.alias:
            source += f" AS {quote_identifier(self.alias)}"
        sql = f"{self.kind.upper()} JOIN {source}"
        if self.on:
            sql += " ON " + " AND ".join(predicate.sql for predicate in self.on)
        return sql

    @property
    def values(self) -> tuple[Any, ...]:
        values = self.table.values if isinstance(self.table, Expression) else ()
        for predicate in self.on:
            values += predicate.values
        return values


class Query(BaseModel):
    """Immutable description of one statement, plus what to do with its results.

    State: the statement ``type`` and target, the projection or written data,
    predicates, joins, ordering, grouping, pagination, and the post-query steps
    relation expansion registered.
    """

    model_config = {"arbitrary_types_allowed": True, "frozen": True}

    type: QueryType
    """Statement kind, fixed at creation."""
    entity: Any
    """Entity class, or the bare table name the query was built from."""
    table: Any
    """Table name, or the expression of a generated table."""
    alias: Optional[str] = None
    connection_name: str = DEFAULT_CONNECTION_NAME
    field_expressions: tuple[Any, ...] = ()
    """SELECT list; ``(ALL_COLUMNS,)`` until fields are chosen."""
    insert_values: tuple[dict[str, Any], ...] = ()
    """Rows of an INSERT."""
    set_values: dict[str, Any] = Field(default_factory=dict)
    """Column assignments of an UPDATE."""
    from_tables: tuple[Any, ...] = ()
    """Extra tables of the FROM clause."""
    modifiers: tuple[str, ...] = ()
    """Raw keywords placed before the SELECT list (e.g. DISTINCT)."""
    where_expressions: tuple[Expression, ...] = ()
    """Predicates, AND-combined."""
    join_clauses: tuple[Join, ...] = ()
    order_expressions: tuple[OrderExpression, ...] = ()
    group_expressions: tuple[Expression, ...] = ()
    limit_value: Optional[int] = None
    """Optional LIMIT (stored to avoid shadowing the limit() method)."""
    offset_value: Optional[int] = None
    """Optional OFFSET (stored to avoid shadowing the offset() method)."""
    post_queries: tuple[Callable[[list[dict]], list[dict]], ...] = ()
    """Steps applied, in order, to the fetched rows."""
    aliases: frozenset[str] = frozenset()
    """Aliases introduced by fields()/aggregate(); never table-qualified."""
    results: Literal["results", "keys"] = "results"
    """``results`` returns rows, ``keys`` generated keys or affected row counts."""
    sql_override: Optional[str] = None
    """SQL returned by exec() instead of running anything (set by as_sql())."""

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, Query):
            return NotImplemented
        return make_hashable(dict(self)) == make_hashable(dict(other))

    def __hash__(self) -> int:
        return hash(make_hashable(dict(self)))

    # --- helpers ---

    def clone_query_with(self, **changes) -> Query:
        """Return a new Query with the same state except for the given overrides."""
        unknown = set(changes) - set(type(self).model_fields)
        if unknown:
            raise ValueError(f"Unknown query attributes: {', '.join(sorted(unknown))}")
        return self.model_copy(update=changes)

    @property
    def reference_name(self) -> str:
        """Name unqualified fields are prefixed with (alias, else table)."""
        if self.alias:
            return self.alias
        if isinstance(self.table, str):
            return self.table
        raise ConfigurationError("Generated tables must have aliases.")

    @property
    def pk(self) -> str:
        """Primary key column of the target entity (``id`` for bare tables)."""
        if is_entity(self.entity):
            return self.entity._get_pk()
        return "id"

    def _qualify(self, field: FieldExpression) -> Expression:
        if field.table is not None or field.name == STAR or field.name in self.aliases:
            return field
        return field.qualify(self.reference_name)

    def qualify_expression(self, expression: Any) -> Any:
        """Prefix every unqualified field of an expression tree with this query's table."""
        if isinstance(expression, Expression):
            return map_fields(expression, self._qualify)
        return expression

    def resolve(self, field: Any) -> Expression:
        """Turn a field reference (``"name"``, ``"users.name"``, ``("name", "alias")``, expression) into an expression."""
        if isinstance(field, (tuple, list)):
            if len(field) != 2:
                raise ValueError(f"Aliased fields are (field, alias) pairs, got {field!r}")
            return AliasedExpression(expression=self.resolve(field[0]), name=str(field[1]))
        if isinstance(field, Expression):
            return self.qualify_expression(field)
        if isinstance(field, str):
            return self._qualify(FieldExpression.parse(field))
        raise TypeError(f"Cannot use {type(field).__name__} as a field: {field!r}")

    # --- projection and written data ---

    def _add_fields(self, expressions: tuple[Expression, ...], aliases: set[str] = frozenset(),
                    replace_all_columns: bool = True) -> Query:
        current = self.field_expressions
        if replace_all_columns and current and _is_all_columns(current[0]):
            merged = tuple(expressions)
        else:
            merged = current + tuple(expressions)
        return self.clone_query_with(field_expressions=merged, aliases=self.aliases | frozenset(aliases))

    def fields(self, *fields: Any) -> Query:
        """Choose selected fields: names, ``(name, alias)`` pairs or expressions.

        The first call replaces the default "every column" projection; later
        calls append.

        Example:
            select_query(User).fields("name", ("email", "mail"))
        """
        aliases = {str(f[1]) for f in fields if isinstance(f, (tuple, list))}
        aliases |= {f.name for f in fields if isinstance(f, AliasedExpression)}
        with_aliases = self.clone_query_with(aliases=self.aliases | frozenset(aliases))
        expressions = tuple(with_aliases.resolve(f) for f in fields)
        return with_aliases._add_fields(expressions)

    def set_fields(self, values: dict[str, Any]) -> Query:
        """Merge column assignments into an update query."""
        return self.clone_query_with(set_values={**self.set_values, **values})

    def values(self, values: dict[str, Any] | list[dict[str, Any]]) -> Query:
        """Add one record (dict) or several (list of dicts) to an insert query."""
        if isinstance(values, dict):
            values = [values]
        return self.clone_query_with(insert_values=self.insert_values + tuple(dict(v) for v in values))

    def from_(self, table: Any) -> Query:
        """Add a table (name or entity) to the FROM clause."""
        if is_entity(table):
            table = table._get_table_name()
        return self.clone_query_with(from_tables=self.from_tables + (table,))

    # --- predicates ---

    def _lookup_to_expression(self, key: str, value: Any) -> Expression:
        parts = key.split("__")
        if len(parts) > 1 and parts[-1] in _WHERE_LOOKUP_MAP:
            lookup = parts[-1]
            path_str = ".".join(parts[:-1])
        else:
            lookup = "exact"
            path_str = ".".join(parts)
        if not path_str.strip():
            raise ValueError(f"where key {key!r} must include a field (e.g. name__like or name)")
        expression = self.resolve(path_str)
        if (lookup == "exact" and isinstance(value, (tuple, list)) and len(value) == 2
                and isinstance(value[0], str) and value[0].lower() in _PAIR_OPERATORS):
            method = _PAIR_OPERATORS[value[0].lower()]
            value = value[1]
        else:
            method = _WHERE_LOOKUP_MAP[lookup]
        value = self.qualify_expression(value)
        return getattr(expression, method)(value)

    def where(self, *statements: Expression | dict[str, Any], **kwargs: Any) -> Query:
        """Add predicates; all of them are AND-combined.

        Examples:
            where(F("hits") > 5)
            where((F("hits") == 1) | (F("hits") > 5))
            where(name__like="chris%", hits__gt=5)
            where({"users.id": 2, "name": ("like", "chris%")})
        """
        expressions = list(self.where_expressions)
        for statement in statements:
            if isinstance(statement, dict):
                expressions.extend(self._lookup_to_expression(k, v) for k, v in statement.items())
            elif isinstance(statement, Expression):
                expressions.append(self.qualify_expression(statement))
            else:
                raise TypeError(f"where requires expressions or dicts; got {type(statement)}")
        expressions.extend(self._lookup_to_expression(k, v) for k, v in kwargs.items())
        return self.clone_query_with(where_expressions=tuple(expressions))

    # --- joins ---

    def join(self, target: Any, *on: Expression, kind: str = "left") -> Query:
        """Add a JOIN.

        With predicates, ``target`` is a table name or entity. Without, ``target``
        names a relation of the query's entity (or its related entity) and the
        predicate is derived from the relation keys: ``pk = fk``. Many-to-many
        relations join the mapping table, then the related table.
        """
        kind = kind.lower()
        if kind not in _JOIN_KINDS:
            raise ValueError(f"Unknown join kind: {kind!r}")
        if on:
            if is_entity(target):
                table, alias = target._get_table_source(), target._get_table_alias()
            else:
                table, alias = target, None
            join = Join(kind=kind, table=table, alias=alias,
                        on=tuple(self.qualify_expression(predicate) for predicate in on))
            return self.clone_query_with(join_clauses=self.join_clauses + (join,))
        rel = get_rel(self.entity, target)
        related = Join(kind=kind, table=rel.entity._get_table_source(), alias=rel.alias)
        if rel.rel_type in MANY_TO_MANY_RELATION_TYPES:
            joins = (
                Join(kind=kind, table=rel.map_table, on=(rel.pk == rel.fk,)),
                related.model_copy(update={"on": (rel.sub_pk == rel.sub_fk,)}),
            )
        else:
            joins = (related.model_copy(update={"on": (rel.pk == rel.fk,)}),)
        return self.clone_query_with(join_clauses=self.join_clauses + joins)

    # --- ordering, grouping, pagination ---

    def order(self, field: Any, direction: str = "ASC") -> Query:
        """Add an ORDER BY term (``direction`` is ASC or DESC)."""
        if isinstance(field, OrderExpression):
            order = self.qualify_expression(field)
        else:
            if direction.upper() not in ("ASC", "DESC"):
                raise ValueError(f"Unknown order direction: {direction!r}")
            order = OrderExpression(expression=self.resolve(field), descending=direction.upper() == "DESC")
        return self.clone_query_with(order_expressions=self.order_expressions + (order,))

    def group(self, *fields: Any) -> Query:
        """Add GROUP BY fields."""
        return self.clone_query_with(group_expressions=self.group_expressions + tuple(map(self.resolve, fields)))

    def limit(self, limit: int) -> Query:
        """Set LIMIT to the given integer."""
        return self.clone_query_with(limit_value=limit)

    def offset(self, offset: int) -> Query:
        """Set OFFSET to the given integer."""
        return self.clone_query_with(offset_value=offset)

    def page(self, page: int, page_size: int) -> Query:
        """Limit results to page number ``page`` (from 0) of ``page_size`` rows."""
        return self.limit(page_size).offset(page * page_size)

    def aggregate(self, function: str | Expression, field: Any, alias: str, group_by: Any = None) -> Query:
        """Select ``FUNCTION(field) AS alias``, optionally grouping by ``group_by``.

        Example:
            select_query(User).aggregate("count", "*", "cnt", "status")
        """
        if isinstance(function, Expression):
            expression = self.qualify_expression(function)
        else:
            expression = FunctionExpression(symbol=function.upper(), arguments=(self.resolve(field),))
        query = self._add_fields((AliasedExpression(expression=expression, name=alias),), aliases={alias})
        if group_by is not None:
            query = query.group(group_by)
        return query

    # --- raw parts and results ---

    def modifier(self, *modifiers: str) -> Query:
        """Put a raw keyword before the SELECT list (e.g. ``modifier("DISTINCT")``)."""
        return self.clone_query_with(modifiers=self.modifiers + ("".join(modifiers),))

    def post_query(self, post: Callable[[list[dict]], list[dict]]) -> Query:
        """Register a step applied to the fetched rows, after the ones already registered."""
        return self.clone_query_with(post_queries=self.post_queries + (post,))

    def as_sql(self) -> Query:
        """Make exec() return this query's SQL instead of running it."""
        from .compiler import compile_query
        return self.clone_query_with(sql_override=compile_query(self)[0])

    def merge(self, other: Query, prefix: Optional[Callable[[Expression], Expression]] = None) -> Query:
        """Append the fields, predicates, joins, ordering, grouping and post steps of ``other``."""
        return merge_query(self, other, prefix)

    def exec(self) -> Any:
        """Execute according to the current execution mode."""
        from .execution import exec_query
        return exec_query(self)

    # --- relation expansion ---

    def with_(self, sub_entity: Any, block: Optional[Callable[[Query], Query]] = None) -> Query:
        """Fetch related rows along with the selected ones.

        ``sub_entity`` names a relation (or its entity). ``block`` refines the
        select run against the related entity; names in it refer to the
        related table. Belongs-to and has-one relations put one related row
        (or None) under the relation name, has-many and many-to-many put a list.
        Related rows are fetched with one query per selected row, after the
        main query ran.

        Example:
            select_query(User).with_("emails", lambda q: q.fields("email").order("email"))
        """
        rel = get_rel(self.entity, sub_entity)
        related_query = select_query(rel.entity)
        many_to_many = rel.rel_type in MANY_TO_MANY_RELATION_TYPES
        if many_to_many:
            related_query = related_query.join(rel.map_table, rel.sub_pk == rel.sub_fk, kind="inner")
        if block is not None:
            related_query = block(related_query)
        current = related_query.field_expressions
        if many_to_many and current and _is_all_columns(current[0]):
            # the mapping table's columns are not part of the related rows
            star = FieldExpression(table=related_query.reference_name, name=STAR)
            related_query = related_query.clone_query_with(field_expressions=(star,) + current[1:])
        logger.debug("with %s (%s) on %s", rel.name, rel.rel_type, self.reference_name)
        if rel.rel_type == "belongs-to":
            return self._with_belongs_to(rel, related_query)
        return self._with_related(rel, related_query)

    def _ensure_projected(self, field: FieldExpression) -> Query:
        current = self.field_expressions
        if not current or _is_all_columns(current[0]):
            return self
        if any(isinstance(f, FieldExpression) and f.name == field.name for f in current):
            return self
        return self._add_fields((field,), replace_all_columns=False)

    def _with_belongs_to(self, rel: Relation, related_query: Query) -> Query:
        query = self._add_fields((self._qualify(FieldExpression(name=rel.fk.name)),), replace_all_columns=False)
        return query.post_query(RelationFetch(rel=rel, related_query=related_query))

    def _with_related(self, rel: Relation, related_query: Query) -> Query:
        query = self._ensure_projected(self._qualify(FieldExpression(name=rel.pk.name)))
        return query.post_query(RelationFetch(rel=rel, related_query=related_query))


class RelationFetch(BaseModel):
    """Post-query step registered by ``with_``: fetches the related rows of each row.

    Compared field by field, so expanding the same relation the same way
    yields equal queries.
    """

    model_config = {"arbitrary_types_allowed": True, "frozen": True}

    rel: Relation
    related_query: Query

    def _fetch(self, predicate: Expression) -> list[dict]:
        return self.related_query.where(predicate).exec()

    def __call__(self, rows: list[dict]) -> list[dict]:
        rel = self.rel
        result = []
        for row in rows:
            row = dict(row)
            if rel.rel_type == "belongs-to":
                fk = rel.fk.name
                # a missing key compiles to IS NULL and matches no parent
                matches = self._fetch(rel.pk == row.get(fk))
                row[rel.name] = matches[0] if matches else None
                row.pop(fk, None)
                row.pop(f"{fk}_2", None)
            else:
                value = row.get(rel.pk.name)
                related = self._fetch(rel.fk == value) if value is not None else []
                if rel.rel_type == "has-one":
                    row[rel.name] = related[0] if related else None
                else:
                    row[rel.name] = related
            result.append(row)
        return result


def merge_query(query: Query, other: Query,
                prefix: Optional[Callable[[Expression], Expression]] = None) -> Query:
    """Concatenate the list parts of ``other`` onto ``query``.

    ``prefix`` rewrites the fields, ordering and grouping of ``other`` before
    they are merged (by default, qualification against ``other``'s table), so
    fragments built for another entity keep referring to it.
    """
    if prefix is None:
        prefix = other.qualify_expression
    other_fields = tuple(f for f in other.field_expressions if not _is_all_columns(f))
    merged = query._add_fields(tuple(map(prefix, other_fields)), aliases=other.aliases,
                               replace_all_columns=bool(other_fields))
    return merged.clone_query_with(
        where_expressions=merged.where_expressions + other.where_expressions,
        join_clauses=merged.join_clauses + other.join_clauses,
        order_expressions=merged.order_expressions + tuple(map(prefix, other.order_expressions)),
        group_expressions=merged.group_expressions + tuple(map(prefix, other.group_expressions)),
        post_queries=merged.post_queries + other.post_queries,
    )


# --- constructors ---

def _empty_query(ent: Any, query_type: str, **state: Any) -> Query:
    if is_entity(ent):
        return Query(
            type=query_type,
            entity=ent,
            table=ent._get_table_source(),
            alias=ent._get_table_alias(),
            connection_name=ent._get_connection_name(),
            **state,
        )
    if isinstance(ent, str):
        return Query(type=query_type, entity=ent, table=ent, **state)
    raise ConfigurationError(f"Invalid entity provided for the query: {ent!r}")


def select_query(ent: Any) -> Query:
    """Create an empty select query for an entity or a table name (a Query is returned as is)."""
    if isinstance(ent, Query):
        return ent
    query = _empty_query(ent, "select")
    defaults = ent._get_default_fields() if is_entity(ent) else ()
    if defaults:
        fields = tuple(FieldExpression.parse(name) for name in defaults)
    else:
        fields = (ALL_COLUMNS,)
    return query.clone_query_with(field_expressions=fields)


def update_query(ent: Any) -> Query:
    """Create an empty update query for an entity or a table name."""
    if isinstance(ent, Query):
        return ent
    return _empty_query(ent, "update", results="keys")


def delete_query(ent: Any) -> Query:
    """Create an empty delete query for an entity or a table name."""
    if isinstance(ent, Query):
        return ent
    return _empty_query(ent, "delete", results="keys")


def insert_query(ent: Any) -> Query:
    """Create an empty insert query for an entity or a table name."""
    if isinstance(ent, Query):
        return ent
    return _empty_query(ent, "insert", results="keys")


def _build_and_exec(query: Query, parts: tuple[Callable[[Query], Query], ...]) -> Any:
    for part in parts:
        query = part(query)
    return query.exec()


def select(ent: Any, *parts: Callable[[Query], Query]) -> Any:
    """Build a select query, apply each part to it, and execute it.

    Example:
        select(User, lambda q: q.fields("name").where(id=2))
    """
    return _build_and_exec(select_query(ent), parts)


def update(ent: Any, *parts: Callable[[Query], Query]) -> Any:
    """Build an update query, apply each part to it, and execute it."""
    return _build_and_exec(update_query(ent), parts)


def delete(ent: Any, *parts: Callable[[Query], Query]) -> Any:
    """Build a delete query, apply each part to it, and execute it."""
    return _build_and_exec(delete_query(ent), parts)


def insert(ent: Any, *parts: Callable[[Query], Query]) -> Any:
    """Build an insert query, apply each part to it, and execute it; returns the generated keys."""
    return _build_and_exec(insert_query(ent), parts)


# --- other SQL ---

def raw(sql: str, *params: Any) -> RawExpression:
    """Embed SQL verbatim (never quoted, prefixed or parsed), e.g. ``fields(raw("NOW()"))``."""
    return RawExpression(text=sql, params=params)


def sqlfn(function: str, *arguments: Any) -> FunctionExpression:
    """Call any SQL function; use ``F(...)`` for field arguments, other values are bound."""
    return FunctionExpression(symbol=function.upper(), arguments=arguments)


def subselect(ent: Any, *parts: Callable[[Query], Query]) -> SubQueryExpression:
    """Build a select usable inside another query, e.g. ``F("id").in_(subselect(...))``."""
    from .execution import query_only
    with query_only():
        query = select(ent, *parts)
    return SubQueryExpression(query=query)


__all__ = [
    "ALL_COLUMNS",
    "Join",
    "Query",
    "RelationFetch",
    "delete",
    "delete_query",
    "insert",
    "insert_query",
    "merge_query",
    "raw",
    "select",
    "select_query",
    "sqlfn",
    "subselect",
    "update",
    "update_query",
]
