"""Field expression for referencing a single column, optionally qualified by table."""

from typing import Optional

from ._bases import Expression

STAR = "*"
"""Column name meaning "every column" (``SELECT *``)."""


def quote_identifier(name: str) -> str:
    """Quote one SQL identifier with ANSI double quotes (``*`` is left bare)."""
    if name == STAR:
        return name
    return '"' + name.replace('"', '""') + '"'


class FieldExpression(Expression):
    """Reference to a column, e.g. ``"users"."name"``.

    ``table`` is the table name or alias the column belongs to; ``None`` leaves
    the column unqualified (used for aliases introduced by the query itself).
    """

    table: Optional[str] = None
    name: str

    @classmethod
    def parse(cls, reference: str) -> "FieldExpression":
        """Split ``"table.column"`` into its parts; a bare name stays unqualified."""
        table, dot, name = reference.rpartition(".")
        if not dot:
            return cls(table=None, name=reference)
        return cls(table=table, name=name)

    @property
    def qualified_name(self) -> str:
        """``table.column`` without quoting (``column`` when unqualified)."""
        if self.table is None:
            return self.name
        return f"{self.table}.{self.name}"

    @property
    def sql(self) -> str:
        if self.table is None:
            return quote_identifier(self.name)
        return f"{quote_identifier(self.table)}.{quote_identifier(self.name)}"

    def qualify(self, table: str) -> "FieldExpression":
        """Return this field bound to ``table`` unless it is already qualified."""
        if self.table is not None:
            return self
        return FieldExpression(table=table, name=self.name)


def F(reference: str) -> FieldExpression:
    """Field reference for predicates, e.g. ``F("hits") > 5`` or ``F("users.id")``."""
    return FieldExpression.parse(reference)
