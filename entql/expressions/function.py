"""SQL function calls."""

from ._bases import ArgumentedExpression


class FunctionExpression(ArgumentedExpression):
    """``NAME(arg, ...)``, e.g. ``COUNT(*)`` from ``aggregate`` or ``LOWER("name")`` from ``sqlfn``.

    Expression arguments render inline, other arguments are bound.
    """

    @property
    def sql(self) -> str:
        if not self.symbol:
            raise ValueError("A SQL function needs a name")
        arguments = ", ".join(self._argument_to_sql(argument) for argument in self.arguments)
        return f"{self.symbol}({arguments})"
