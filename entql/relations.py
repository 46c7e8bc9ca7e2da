"""Relations between entities: declarations, lazy resolution and key conventions.

A relation is registered on its owner entity as a :class:`LazyRelation`, a cell
that resolves the related entity only when first forced. Related entities can
therefore be named before they are defined (``HasMany("Email")`` inside
``User`` while ``Email`` comes later in the module), including circular
references. Forcing derives a concrete :class:`Relation` descriptor from the
two entities and the naming conventions:

- has-one / has-many: the foreign key is on the related table, ``<owner table>_id``
- belongs-to: the foreign key is on the owner table, ``<related table>_id``
- many-to-many: a mapping table (``<owner>_<related>`` for has-many-to-many,
  ``<related>_<owner>`` for belongs-to-many-to-many) holds ``<owner table>_id``
  and ``<related table>_id``

Every name can be overridden with the ``fk``, ``sub_fk`` and ``map_table`` options.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, ClassVar, Literal, Optional

from pydantic import BaseModel

from .expressions import FieldExpression
from .utils.get_entity_by_name import get_entity_by_name
from .utils.is_entity import is_entity

logger = logging.getLogger("entql")

RelationType = Literal[
    "has-one",
    "belongs-to",
    "has-many",
    "has-many-to-many",
    "belongs-to-many-to-many",
]

DIRECT_RELATION_TYPES = ("has-one", "belongs-to")
MANY_TO_MANY_RELATION_TYPES = ("has-many-to-many", "belongs-to-many-to-many")
RELATION_TYPES = DIRECT_RELATION_TYPES + ("has-many",) + MANY_TO_MANY_RELATION_TYPES


class ConfigurationError(Exception):
    """Entity or relation declarations are inconsistent (a programming error)."""
    pass


class Relation(BaseModel):
    """How an owner entity relates to another one.

    ``pk`` and ``fk`` are table-qualified fields. For has-one and has-many,
    ``pk`` is the owner's primary key and ``fk`` the related table's column
    pointing at it; for belongs-to, ``pk`` is the related primary key and ``fk``
    the owner's column.
    """

    model_config = {"arbitrary_types_allowed": True, "frozen": True}

    name: str
    rel_type: RelationType
    entity: Any
    """Related entity class."""
    table: str
    alias: Optional[str] = None
    pk: FieldExpression
    fk: FieldExpression


class ManyToManyRelation(Relation):
    """Relation through a mapping table.

    ``fk`` is the mapping column pointing at the owner (``pk``), ``sub_fk`` the
    one pointing at the related entity (``sub_pk``).
    """

    rel_type: Literal["has-many-to-many", "belongs-to-many-to-many"]
    sub_pk: FieldExpression
    sub_fk: FieldExpression
    map_table: str


def create_relation(entity, sub_entity, rel_type: str, name: str, options: dict) -> Relation:
    """Derive the relation descriptor between two resolved entities."""
    # key and mapping-table names come from table names; aliases only qualify columns
    owner, owner_table = entity._get_reference_name(), entity._get_table_name()
    related, related_table = sub_entity._get_reference_name(), sub_entity._get_table_name()
    common = dict(
        name=name,
        rel_type=rel_type,
        entity=sub_entity,
        table=related_table,
        alias=sub_entity._get_table_alias(),
    )
    if rel_type in MANY_TO_MANY_RELATION_TYPES:
        if rel_type == "has-many-to-many":
            default_map_table = f"{owner_table}_{related_table}"
        else:
            default_map_table = f"{related_table}_{owner_table}"
        map_table = str(options.get("map_table") or default_map_table)
        return ManyToManyRelation(
            **common,
            pk=FieldExpression(table=owner, name=entity._get_pk()),
            fk=FieldExpression(table=map_table, name=options.get("fk") or f"{owner_table}_id"),
            sub_pk=FieldExpression(table=related, name=sub_entity._get_pk()),
            sub_fk=FieldExpression(table=map_table, name=options.get("sub_fk") or f"{related_table}_id"),
            map_table=map_table,
        )
    if rel_type in ("has-one", "has-many"):
        pk = FieldExpression(table=owner, name=entity._get_pk())
        fk = FieldExpression(table=related, name=options.get("fk") or f"{owner_table}_id")
    elif rel_type == "belongs-to":
        pk = FieldExpression(table=related, name=sub_entity._get_pk())
        fk = FieldExpression(table=owner, name=options.get("fk") or f"{related_table}_id")
    else:
        raise ConfigurationError(f"Unknown relation type: {rel_type}")
    return Relation(**common, pk=pk, fk=fk)


class LazyRelation:
    """Relation resolved on first use, then memoized.

    Concurrent first uses may both resolve; the outcome is the same either way.
    """

    def __init__(self, name: str, resolve: Callable[[], Relation]):
        self.name = name
        self._resolve = resolve
        self._forced = False
        self._value: Optional[Relation] = None

    @property
    def is_forced(self) -> bool:
        return self._forced

    def force(self) -> Relation:
        if not self._forced:
            self._value = self._resolve()
            self._forced = True
        return self._value


def rel(entity, related, rel_type: str, name: Optional[str] = None, **options) -> LazyRelation:
    """Register a relation on ``entity`` and return its lazy cell.

    ``related`` is an entity class, the name of one (resolved when the relation
    is first used), or a ``(relation_name, entity_or_name)`` pair.
    """
    if rel_type not in RELATION_TYPES:
        raise ConfigurationError(f"Unknown relation type: {rel_type}")
    if isinstance(related, (tuple, list)):
        name, related = related
    if name is None:
        name = related._get_entity_name() if is_entity(related) else str(related)

    def resolve() -> Relation:
        sub_entity = related if is_entity(related) else get_entity_by_name(related)
        if not is_entity(sub_entity):
            raise ConfigurationError(f"Entity used in relationship does not exist: {related}")
        logger.debug("Resolved relation %s.%s -> %s (%s)",
                     entity.__name__, name, sub_entity.__name__, rel_type)
        return create_relation(entity, sub_entity, rel_type, name, options)

    lazy = LazyRelation(name, resolve)
    entity._relations[name] = lazy
    return lazy


def get_rel(entity, sub_entity) -> Relation:
    """Force and return the relation of ``entity`` named (or targeting) ``sub_entity``.

    Raises ConfigurationError when no such relation is declared.
    """
    if isinstance(sub_entity, Relation):
        return sub_entity
    relations = getattr(entity, "_relations", None) or {}
    if is_entity(sub_entity):
        lazy = relations.get(sub_entity._get_entity_name())
        if lazy is None:
            lazy = next((candidate for candidate in relations.values()
                         if candidate.force().entity is sub_entity), None)
        label = sub_entity._get_table_name()
    else:
        lazy = relations.get(str(sub_entity))
        label = str(sub_entity)
    if lazy is None:
        raise ConfigurationError(f"No relationship defined for table: {label}")
    return lazy.force()


class RelationDeclaration:
    """Relation written as a class attribute of an entity; the attribute name is the relation name."""

    REL_TYPE: ClassVar[str]

    def __init__(self, related, **options):
        self.related = related
        self.options = options

    def __repr__(self):
        return f"{type(self).__name__}({self.related!r})"


class HasOne(RelationDeclaration):
    """The related table holds a foreign key to this entity; at most one row."""
    REL_TYPE = "has-one"


class BelongsTo(RelationDeclaration):
    """This entity holds a foreign key to the related one."""
    REL_TYPE = "belongs-to"


class HasMany(RelationDeclaration):
    """The related table holds a foreign key to this entity."""
    REL_TYPE = "has-many"


class HasManyToMany(RelationDeclaration):
    REL_TYPE = "has-many-to-many"


class BelongsToManyToMany(RelationDeclaration):
    REL_TYPE = "belongs-to-many-to-many"
