"""Operators with a single operand."""

from ._bases import ArgumentedExpression


class UnaryOperatorExpression(ArgumentedExpression):
    """``NOT x`` or ``-x``; with ``postfix``, ``x IS NULL``."""

    postfix: bool = False

    @property
    def sql(self) -> str:
        if len(self.arguments) != 1:
            raise ValueError(f"{self.symbol} takes exactly one operand")
        operand = self._argument_to_sql(self.arguments[0])
        return f"{operand} {self.symbol}" if self.postfix else f"{self.symbol} {operand}"
