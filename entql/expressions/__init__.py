"""SQL expression types for query building.

Predicates, projections and orderings are trees of expression nodes. Start from
a field reference (``F("hits")``, ``F("users.id")``) and combine with operators
(``==``, ``<``, ``.in_(...)``, ``.like(...)``) and logic (``&``, ``|``, ``~``).
Each expression has a ``.sql`` property (SQL fragment with ``?`` placeholders)
and ``.values`` (tuple of bound values in the same order).
"""

from ._bases import ArgumentedExpression, Expression
from .aliased import AliasedExpression
from .field import STAR, F, FieldExpression, quote_identifier
from .function import FunctionExpression
from .like import LikeExpression, escape_for_like
from .nary_operator import NaryOperatorExpression
from .order import OrderExpression
from .raw import RawExpression
from .subquery import SubQueryExpression
from .unary_operator import UnaryOperatorExpression
from .walk import map_fields

__all__ = [
    "STAR",
    "AliasedExpression",
    "ArgumentedExpression",
    "Expression",
    "F",
    "FieldExpression",
    "FunctionExpression",
    "LikeExpression",
    "NaryOperatorExpression",
    "OrderExpression",
    "RawExpression",
    "SubQueryExpression",
    "UnaryOperatorExpression",
    "escape_for_like",
    "map_fields",
    "quote_identifier",
]
