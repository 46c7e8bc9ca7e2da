"""Embedding a select query inside another statement."""

from typing import Any

from ._bases import Expression


class SubQueryExpression(Expression):
    """A compiled sub-select wrapped in parentheses, usable wherever a value is.

    ``query`` is an unexecuted :class:`entql.query.Query`.
    """

    query: Any

    @property
    def sql(self) -> str:
        from ..compiler import compile_query
        return "(" + compile_query(self.query)[0] + ")"

    @property
    def values(self) -> tuple[Any, ...]:
        from ..compiler import compile_query
        return compile_query(self.query)[1]
