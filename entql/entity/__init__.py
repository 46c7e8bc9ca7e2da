"""Entity base and metaclass."""

from .base import Entity
from .meta import EntityMeta

__all__ = [
    "Entity",
    "EntityMeta",
]
