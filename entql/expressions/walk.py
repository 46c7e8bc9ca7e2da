"""Rebuilding expression trees node by node."""

from typing import Any, Callable

from ._bases import ArgumentedExpression, Expression
from .aliased import AliasedExpression
from .field import FieldExpression
from .order import OrderExpression


def map_fields(expression: Any, function: Callable[[FieldExpression], Expression]) -> Any:
    """Return ``expression`` with every FieldExpression replaced by ``function(field)``.

    Raw fragments and sub-queries are opaque and returned unchanged, as are
    literal values.
    """
    if isinstance(expression, FieldExpression):
        return function(expression)
    if isinstance(expression, OrderExpression):
        return expression.model_copy(update={"expression": map_fields(expression.expression, function)})
    if isinstance(expression, AliasedExpression):
        return expression.model_copy(update={"expression": map_fields(expression.expression, function)})
    if isinstance(expression, ArgumentedExpression):
        return expression.with_arguments(
            tuple(map_fields(a, function) if isinstance(a, Expression) else a for a in expression.arguments)
        )
    return expression
