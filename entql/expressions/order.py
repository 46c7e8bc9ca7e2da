"""ORDER BY terms."""

from ._bases import Expression


class OrderExpression(Expression):
    """One ORDER BY term, e.g. ``"users"."name" DESC``."""

    expression: Expression
    descending: bool = False

    @property
    def sql(self) -> str:
        return f"{self.expression.sql} {'DESC' if self.descending else 'ASC'}"

    @property
    def values(self):
        return self.expression.values
