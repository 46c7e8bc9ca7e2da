"""Aliased projection item."""

from ._bases import Expression
from .field import quote_identifier


class AliasedExpression(Expression):
    """``expression AS "name"`` inside a SELECT list."""

    expression: Expression
    name: str

    @property
    def sql(self) -> str:
        return f"{self.expression.sql} AS {quote_identifier(self.name)}"

    @property
    def values(self):
        return self.expression.values
