"""Operators joining two or more operands."""

from ._bases import ArgumentedExpression


class NaryOperatorExpression(ArgumentedExpression):
    """Parenthesized ``a SYMBOL b [SYMBOL c ...]``, e.g. ``("hits" > ?)`` or ``(x AND y)``.

    Comparing with None (``F("email") == None``) renders ``IS NULL`` /
    ``IS NOT NULL``, since ``= NULL`` never matches.
    """

    @property
    def _null_comparison(self) -> bool:
        return self.symbol in ("=", "!=") and len(self.arguments) == 2 and self.arguments[1] is None

    @property
    def sql(self) -> str:
        if not self.symbol or not self.arguments:
            raise ValueError("An operator needs a symbol and operands")
        if self._null_comparison:
            test = "IS NULL" if self.symbol == "=" else "IS NOT NULL"
            return f"({self._argument_to_sql(self.arguments[0])} {test})"
        return "(" + f" {self.symbol} ".join(map(self._argument_to_sql, self.arguments)) + ")"

    @property
    def values(self):
        if self._null_comparison:
            return self._argument_to_values(self.arguments[0])
        return super().values
