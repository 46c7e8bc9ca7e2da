"""Cascading save of a record and the related records nested in it.

A record may carry related records under relation names::

    save(User, {"name": "chris",
                "account": {"name": "acme"},          # belongs-to
                "emails": [{"email": "c@acme.com"}],  # has-many
                "roles": [{"id": 3}]})                # many-to-many

Parents (belongs-to) are written first so their keys can be stamped on the
record, then the record itself (updated when it carries its primary key,
inserted otherwise), then children, which receive the record's key, and
finally many-to-many associates, each linked with a mapping-table row.
"""

import logging
from contextlib import nullcontext
from typing import Any, Optional

from .execution import DRY_RUN, QUERY_ONLY, SQL_ONLY, current_mode
from .query import insert_query, update_query
from .relations import MANY_TO_MANY_RELATION_TYPES, get_rel
from .transaction import transaction
from .validation import get_errors

logger = logging.getLogger("entql")


def _nested_items(rel, value) -> list:
    if value is None:
        return []
    if rel.rel_type in ("belongs-to", "has-one"):
        return [value]
    return list(value)


def get_all_errors(entity, record: dict) -> Optional[dict[str, list[str]]]:
    """Validate a record and the related records nested in it.

    Errors of nested records are keyed ``relation.field`` (belongs-to,
    has-one) or ``relation[index].field`` (lists).
    """
    errors = dict(get_errors(entity, record) or {})
    for name in entity._relations:
        if name not in record:
            continue
        rel = get_rel(entity, name)
        value = record[name]
        if value is None:
            continue
        if rel.rel_type in ("belongs-to", "has-one"):
            items = [(name, value)]
        else:
            items = [(f"{name}[{index}]", item) for index, item in enumerate(value)]
        for prefix, item in items:
            for field, messages in (get_all_errors(rel.entity, item) or {}).items():
                errors[f"{prefix}.{field}"] = messages
    return errors or None


def insert_or_update_with_rels(entity, record: dict) -> dict[str, Any]:
    """Write a record and its nested related records; returns the saved record.

    The saved record holds the written columns, what the database generated
    for them, and the saved nested records under their relation names.
    """
    _check_mode()
    relations = {name: get_rel(entity, name) for name in entity._relations if name in record}
    payload = {key: value for key, value in record.items() if key not in entity._relations}
    saved_nested: dict[str, Any] = {}

    for name, rel in relations.items():
        if rel.rel_type == "belongs-to" and record[name] is not None:
            parent = insert_or_update_with_rels(rel.entity, record[name])
            payload[rel.fk.name] = parent[rel.pk.name]
            saved_nested[name] = parent

    pk = entity._get_pk()
    if payload.get(pk) is not None:
        changes = {key: value for key, value in payload.items() if key != pk}
        if changes:
            update_query(entity).set_fields(changes).where({pk: payload[pk]}).exec()
        saved = dict(payload)
    else:
        generated = insert_query(entity).values(payload).exec()
        saved = {**payload, **generated}
    owner_key = saved[pk]
    logger.debug("Saved %s %s=%r", entity.__name__, pk, owner_key)

    for name, rel in relations.items():
        if rel.rel_type in ("has-one", "has-many"):
            children = [
                insert_or_update_with_rels(rel.entity, {**child, rel.fk.name: owner_key})
                for child in _nested_items(rel, record[name])
            ]
            if rel.rel_type == "has-one":
                saved_nested[name] = children[0] if children else None
            else:
                saved_nested[name] = children
        elif rel.rel_type in MANY_TO_MANY_RELATION_TYPES:
            associates = []
            for item in _nested_items(rel, record[name]):
                associate = insert_or_update_with_rels(rel.entity, item)
                insert_query(rel.map_table).clone_query_with(
                    connection_name=entity._get_connection_name(),
                ).values({
                    rel.fk.name: owner_key,
                    rel.sub_fk.name: associate[rel.sub_pk.name],
                }).exec()
                associates.append(associate)
            saved_nested[name] = associates

    return {**saved, **saved_nested}


def _check_mode():
    mode = current_mode()
    if mode in (SQL_ONLY, QUERY_ONLY):
        raise ValueError(f"Records cannot be saved in {mode} mode: nested writes need generated keys")


def _transaction_for(entity):
    # dry runs must not open a connection
    if current_mode() == DRY_RUN:
        return nullcontext()
    return transaction(entity._get_connection_name())


def save(entity, record: dict) -> tuple[bool, Any]:
    """Validate, then write a record and its nested records in one transaction.

    Returns ``(True, saved_record)``, or ``(False, errors)`` without writing
    anything when a record of the tree is invalid.
    """
    _check_mode()
    errors = get_all_errors(entity, record)
    if errors:
        logger.debug("Not saving invalid %s: %s", entity.__name__, errors)
        return False, errors
    with _transaction_for(entity):
        saved = insert_or_update_with_rels(entity, record)
    return True, saved


def create(entity, records: list[dict]) -> tuple[bool, Any]:
    """Save several records atomically.

    Returns ``(True, saved_records)``; when one of them is invalid, everything
    written so far is rolled back and ``(False, errors)`` is returned.
    """
    _check_mode()
    saved = []
    with _transaction_for(entity) as t:
        for record in records:
            errors = get_all_errors(entity, record)
            if errors:
                if t is not None:
                    t.rollback()
                return False, errors
            saved.append(insert_or_update_with_rels(entity, record))
    return True, saved
