"""Structural keys for query parts, so two queries built alike compare equal."""

import datetime
import decimal
import enum
import inspect
from typing import Any

from pydantic import BaseModel

_SCALARS = (int, float, str, bytes, type(None), datetime.date, decimal.Decimal)


def make_hashable(thing: Any):
    """Nested tuples standing for ``thing``; raises ValueError for unsupported values."""
    from ..expressions import Expression
    if isinstance(thing, _SCALARS):
        return thing
    if isinstance(thing, Expression):
        # == on an expression builds a predicate
        return thing.structure
    if isinstance(thing, enum.Enum):
        return (thing.name, thing.value)
    if isinstance(thing, BaseModel):
        return (type(thing).__name__, make_hashable(dict(thing)))
    if isinstance(thing, dict):
        return tuple(sorted(
            ((key, make_hashable(value)) for key, value in thing.items()),
            key=lambda item: str(item[0]),
        ))
    if isinstance(thing, (set, frozenset)):
        return tuple(sorted(map(make_hashable, thing), key=repr))
    if isinstance(thing, (list, tuple)):
        return tuple(map(make_hashable, thing))
    # entity classes, post-query steps and other callables: identity
    if inspect.isclass(thing) or callable(thing):
        return thing
    raise ValueError(f"Cannot hash `{thing}`, {type(thing)}")
