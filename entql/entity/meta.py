"""Metaclass for Entity: reads class keywords and registers declared relations."""

from ..connection import DEFAULT_CONNECTION_NAME
from ..relations import ConfigurationError, RelationDeclaration, rel


class EntityMeta(type):
    """Metaclass for Entity: resolves table options and registers relation declarations."""

    def __new__(mcs, name, bases, namespace,
                table=None,
                alias: str = None,
                pk: str = None,
                connection_name: str = None,
                **kwargs):
        if table is not None and not isinstance(table, str) and not alias:
            raise ConfigurationError("Generated tables must have aliases.")
        result = super().__new__(mcs, name, bases, namespace, **kwargs)
        if not pk:
            for base in bases:
                pk = getattr(base, "_PK", None)
                if pk:
                    break
        if not connection_name:
            for base in bases:
                cn = getattr(base, "_CONNECTION_NAME", None)
                if cn:
                    connection_name = cn
        result._TABLE = table if table is not None else name.lower()
        result._ALIAS = alias
        result._PK = pk or "id"
        result._CONNECTION_NAME = connection_name or DEFAULT_CONNECTION_NAME
        result._relations = {}
        declared = {}
        for klass in reversed(result.__mro__):
            for attribute, value in vars(klass).items():
                if isinstance(value, RelationDeclaration):
                    declared[attribute] = value
        for attribute, declaration in declared.items():
            rel(result, declaration.related, declaration.REL_TYPE, name=attribute, **declaration.options)
        return result
