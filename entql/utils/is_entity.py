"""Check if an object is an entity class."""

import inspect


def is_entity(t) -> bool:
    """Return True if t is an Entity subclass (can be the target of a query or relation)."""
    return (
        inspect.isclass(t)
        and getattr(t, "_get_table_name", None) is not None
        and getattr(t, "_relations", None) is not None
    )
