"""Verbatim SQL fragments."""

from typing import Any, Tuple

from pydantic import Field as PydanticField

from ._bases import Expression


class RawExpression(Expression):
    """SQL emitted exactly as given: never quoted, prefixed or parsed.

    ``params`` are bound to the ``?`` placeholders the text may contain.
    """

    text: str
    params: Tuple[Any, ...] = PydanticField(default_factory=tuple)

    @property
    def sql(self) -> str:
        return self.text

    @property
    def values(self) -> tuple[Any, ...]:
        return tuple(self.params)
