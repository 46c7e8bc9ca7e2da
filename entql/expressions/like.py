"""LIKE expression."""

from typing import Any

from ._bases import ArgumentedExpression
from .function import FunctionExpression
from .nary_operator import NaryOperatorExpression


def escape_for_like(needle: str) -> str:
    """Escape LIKE wildcards so the needle matches literally (used with ``ESCAPE '\\'``)."""
    return needle.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class LikeExpression(ArgumentedExpression):
    """LIKE expression (e.g. ``name LIKE ?`` bound to ``'%John%'``).

    Wildcards are added to the bound pattern rather than concatenated in SQL,
    so the fragment is the same on every dialect.
    """

    case_insensitive: bool = False
    fuzzy_start: bool = True
    fuzzy_end: bool = True
    escape_needle: bool = True
    """When True (default), ``%``, ``_`` and ``\\`` in the needle match literally."""

    @property
    def _needle(self) -> Any:
        needle = self.arguments[1]
        if not isinstance(needle, str):
            return needle
        if self.escape_needle:
            needle = escape_for_like(needle)
        if self.case_insensitive:
            needle = needle.lower()
        if self.fuzzy_start:
            needle = "%" + needle
        if self.fuzzy_end:
            needle = needle + "%"
        return needle

    @property
    def sql(self) -> str:
        assert len(self.arguments) == 2, "LikeExpression must have two arguments"
        haystack = self.arguments[0]
        if self.case_insensitive:
            haystack = FunctionExpression(symbol="LOWER", arguments=(haystack,))
        sql = NaryOperatorExpression(symbol=self.symbol, arguments=(haystack, self._needle)).sql
        if self.escape_needle:
            sql = sql[:-1] + " ESCAPE '\\')"
        return sql

    @property
    def values(self) -> tuple[Any, ...]:
        return self._argument_to_values(self.arguments[0]) + self._argument_to_values(self._needle)
