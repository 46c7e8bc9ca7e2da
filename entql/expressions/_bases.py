"""Expression nodes: the building blocks of predicates, projections and orderings.

Python operators on an expression build new nodes instead of evaluating
anything: ``F("hits") > 5`` is the tree for ``("hits" > ?)`` bound to ``5``.
"""

from __future__ import annotations
from typing import Any, Tuple

from pydantic import BaseModel, Field as PydanticField


def _operator(symbol: str, *arguments: Any):
    from .nary_operator import NaryOperatorExpression
    return NaryOperatorExpression(symbol=symbol, arguments=arguments)


def _prefix(symbol: str, argument: Any):
    from .unary_operator import UnaryOperatorExpression
    return UnaryOperatorExpression(symbol=symbol, arguments=(argument,))


def _postfix(symbol: str, argument: Any):
    from .unary_operator import UnaryOperatorExpression
    return UnaryOperatorExpression(symbol=symbol, arguments=(argument,), postfix=True)


def _function(name: str, *arguments: Any):
    from .function import FunctionExpression
    return FunctionExpression(symbol=name, arguments=arguments)


def _like(haystack: Any, needle: Any, **flags: bool):
    from .like import LikeExpression
    return LikeExpression(symbol="LIKE", arguments=(haystack, needle), **flags)


class Expression(BaseModel):
    """Base type for all SQL expression nodes.

    Subclasses implement ``sql``, a fragment with ``?`` placeholders, and
    override ``values`` when they bind literals (in placeholder order).
    Nodes are immutable, so one tree can be shared by any number of queries.
    """

    model_config = {"arbitrary_types_allowed": True, "frozen": True}

    @property
    def sql(self) -> str:
        raise NotImplementedError("Subclasses must implement `sql` property")

    @property
    def values(self) -> tuple[Any, ...]:
        return ()

    @property
    def structure(self) -> tuple:
        """Hashable description of the node.

        ``==`` builds SQL, so queries compare their expressions through this.
        """
        return (type(self).__name__, self.sql, self.values)

    # membership and nullity

    def in_(self, other: Any):
        """``expr IN (...)``: a list of values, or a ``subselect``."""
        return _operator("IN", self, other)

    def not_in(self, other: Any):
        return _operator("NOT IN", self, other)

    def is_(self, other: Any):
        return _operator("IS", self, other)

    def is_not(self, other: Any):
        return _operator("IS NOT", self, other)

    def is_null(self):
        return _postfix("IS NULL", self)

    def is_not_null(self):
        return _postfix("IS NOT NULL", self)

    def _isnull(self, isnull: bool):
        """For ``where(column__isnull=...)``."""
        return self.is_null() if isnull else self.is_not_null()

    def _iexact(self, value: Any):
        """For ``where(column__iexact=...)``: strings compare lowercased."""
        if isinstance(value, str):
            return self.lower() == value.lower()
        return self == value

    def between(self, low: Any, high: Any = None):
        """Inclusive range; ``low`` may also be a ``(low, high)`` pair (``column__range=``)."""
        if high is None:
            if not isinstance(low, (tuple, list)) or len(low) != 2:
                raise ValueError(f"A range needs two bounds, got {low!r}")
            low, high = low
        return (self >= low) & (self <= high)

    # projection and ordering

    def alias(self, name: str):
        """``expr AS "name"`` in a SELECT list."""
        from .aliased import AliasedExpression
        return AliasedExpression(expression=self, name=name)

    @property
    def asc(self):
        from .order import OrderExpression
        return OrderExpression(expression=self, descending=False)

    @property
    def desc(self):
        from .order import OrderExpression
        return OrderExpression(expression=self, descending=True)

    def lower(self):
        return _function("LOWER", self)

    def upper(self):
        return _function("UPPER", self)

    # logic

    def __invert__(self):
        return _prefix("NOT", self)

    def __and__(self, other: Any):
        return _operator("AND", self, other)

    def __or__(self, other: Any):
        return _operator("OR", self, other)

    # arithmetic

    def __add__(self, other: Any):
        return _operator("+", self, other)

    def __sub__(self, other: Any):
        return _operator("-", self, other)

    def __mul__(self, other: Any):
        return _operator("*", self, other)

    def __truediv__(self, other: Any):
        return _operator("/", self, other)

    def __mod__(self, other: Any):
        return _operator("%", self, other)

    def __neg__(self):
        return _prefix("-", self)

    # comparison

    def __eq__(self, other: Any):
        return _operator("=", self, other)

    def __ne__(self, other: Any):
        return _operator("!=", self, other)

    def __lt__(self, other: Any):
        return _operator("<", self, other)

    def __le__(self, other: Any):
        return _operator("<=", self, other)

    def __gt__(self, other: Any):
        return _operator(">", self, other)

    def __ge__(self, other: Any):
        return _operator(">=", self, other)

    # text matching: like/ilike take a raw pattern, the others match literally

    def like(self, pattern: str):
        return _like(self, pattern, fuzzy_start=False, fuzzy_end=False, escape_needle=False)

    def ilike(self, pattern: str):
        return _like(self, pattern, fuzzy_start=False, fuzzy_end=False, escape_needle=False,
                     case_insensitive=True)

    def startswith(self, prefix: str):
        return _like(self, prefix, fuzzy_start=False)

    def istartswith(self, prefix: str):
        return _like(self, prefix, fuzzy_start=False, case_insensitive=True)

    def endswith(self, suffix: str):
        return _like(self, suffix, fuzzy_end=False)

    def iendswith(self, suffix: str):
        return _like(self, suffix, fuzzy_end=False, case_insensitive=True)

    def contains(self, substring: str):
        return _like(self, substring)

    def icontains(self, substring: str):
        return _like(self, substring, case_insensitive=True)


class ArgumentedExpression(Expression):
    """A ``symbol`` applied to ``arguments``: operators and function calls.

    Arguments that are expressions render as their SQL; sequences render as a
    parenthesized list of placeholders (``(NULL)`` when empty, which matches
    nothing); anything else is one placeholder.
    """

    symbol: str
    arguments: Tuple[Any, ...] = PydanticField(default_factory=tuple)

    @staticmethod
    def _argument_to_sql(argument: Any) -> str:
        if isinstance(argument, Expression):
            return argument.sql
        if isinstance(argument, (list, tuple, set, frozenset)):
            return "(" + (", ".join("?" for _ in argument) or "NULL") + ")"
        return "?"

    @staticmethod
    def _argument_to_values(argument: Any) -> tuple[Any, ...]:
        if isinstance(argument, Expression):
            return argument.values
        if isinstance(argument, (list, tuple, set, frozenset)):
            return tuple(argument)
        return (argument,)

    @property
    def values(self) -> tuple[Any, ...]:
        return sum(map(self._argument_to_values, self.arguments), ())

    def with_arguments(self, arguments: tuple[Any, ...]) -> "ArgumentedExpression":
        """Copy of this node over other arguments (used to qualify field names)."""
        return self.model_copy(update={"arguments": tuple(arguments)})
