"""Resolve entity classes by name (forward references in relation declarations)."""

from typing import Iterable, Optional


def iter_subclasses(base: type) -> Iterable[type]:
    """Every subclass of ``base`` at any depth; later declarations come first."""
    for subclass in reversed(base.__subclasses__()):
        yield from iter_subclasses(subclass)
        yield subclass


def get_all_entities() -> Iterable[type["Entity"]]:
    from ..entity import Entity
    return iter_subclasses(Entity)


def get_entity_by_name(name: str) -> Optional[type["Entity"]]:
    """Newest entity whose class name, entity name or table is ``name``."""
    return next(
        (cls for cls in get_all_entities()
         if name in (cls.__name__, cls._get_entity_name(), cls._get_table_name())),
        None,
    )
