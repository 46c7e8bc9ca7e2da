"""Record validation before persistence."""

from typing import Optional

from pydantic import ValidationError


def _add_errors(errors: dict[str, list[str]], field: str, messages) -> None:
    if isinstance(messages, str):
        messages = [messages]
    errors.setdefault(field, []).extend(messages)


def get_errors(entity, record: dict) -> Optional[dict[str, list[str]]]:
    """Return ``{field: [messages]}`` for an invalid record, or None when it is valid.

    The entity's pydantic ``schema`` is checked first (errors are keyed by the
    first element of their location), then every callable of ``validations``,
    each returning its own mapping of errors or None. Relation keys are not
    part of the checked payload.
    """
    relations = getattr(entity, "_relations", None) or {}
    payload = {key: value for key, value in record.items() if key not in relations}
    errors: dict[str, list[str]] = {}
    if entity.schema is not None:
        try:
            entity.schema.model_validate(payload)
        except ValidationError as error:
            for detail in error.errors():
                location = detail.get("loc") or ("__root__",)
                _add_errors(errors, str(location[0]), detail["msg"])
    for validation in entity.validations:
        for field, messages in (validation(payload) or {}).items():
            _add_errors(errors, field, messages)
    return errors or None
