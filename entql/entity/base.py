"""Entity base: the description of one mapped table."""

from typing import Any, Callable, ClassVar, Optional

from pydantic import BaseModel

from ..expressions import Expression
from ..relations import Relation, get_rel
from .meta import EntityMeta


class Entity(metaclass=EntityMeta):
    """Base class for entity declarations.

    An entity subclass describes a table; rows read or written through it are
    plain dicts. Table options are class keywords, everything else is a class
    attribute::

        class User(Entity, table="users"):
            fields = ("name", "email")
            emails = HasMany("Email")
            account = BelongsTo("Account", fk="acct_id")

    Subclasses inherit ``pk``, ``connection_name`` and relation declarations.
    """

    fields: ClassVar[tuple[str, ...]] = ()
    """Columns selected by default (the primary key is always added)."""
    transforms: ClassVar[tuple[Callable[[dict], dict], ...]] = ()
    """Applied, in order, to every row a select returns."""
    prepares: ClassVar[tuple[Callable[[dict], dict], ...]] = ()
    """Applied, in order, to every row an insert or update writes."""
    schema: ClassVar[Optional[type[BaseModel]]] = None
    """Pydantic model records must satisfy before ``save``."""
    validations: ClassVar[tuple[Callable[[dict], Optional[dict]], ...]] = ()
    """Extra record checks returning ``{field: [messages]}`` or None."""

    def __new__(cls, *args, **kwargs):
        raise TypeError(f"{cls.__name__} describes a table; rows are plain dicts")

    @classmethod
    def _get_entity_name(cls) -> str:
        """Name other entities use to refer to this one in relations."""
        return cls.__name__.lower()

    @classmethod
    def _get_table_name(cls) -> str:
        """SQL table name (the alias for generated tables)."""
        if isinstance(cls._TABLE, str):
            return cls._TABLE
        return cls._ALIAS

    @classmethod
    def _get_table_source(cls) -> str | Expression:
        """What goes in FROM: the table name, or the expression of a generated table."""
        return cls._TABLE

    @classmethod
    def _get_table_alias(cls) -> Optional[str]:
        return cls._ALIAS

    @classmethod
    def _get_reference_name(cls) -> str:
        """Name columns of this entity are qualified with (alias, else table)."""
        return cls._ALIAS or cls._get_table_name()

    @classmethod
    def _get_pk(cls) -> str:
        return cls._PK

    @classmethod
    def _get_connection_name(cls) -> str:
        return cls._CONNECTION_NAME

    @classmethod
    def _get_default_fields(cls) -> tuple[str, ...]:
        """Default projection, qualified with the table; empty means every column."""
        if not cls.fields:
            return ()
        names = list(cls.fields)
        if cls._get_pk() not in names:
            names.append(cls._get_pk())
        prefix = cls._get_reference_name()
        return tuple(name if "." in name else f"{prefix}.{name}" for name in names)

    @classmethod
    def get_rel(cls, name: Any) -> Relation:
        """Return the relation called ``name`` (or targeting entity ``name``)."""
        return get_rel(cls, name)

    @classmethod
    def q(cls) -> "Query":
        """Return a select Query for this entity."""
        from ..query import select_query
        return select_query(cls)
