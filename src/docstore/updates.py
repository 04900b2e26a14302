"""`$set` update objects and their compilation to nested json_set() calls."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from docstore.documents import encode, validate_value
from docstore.errors import UnsupportedUpdateOperatorError
from docstore.identifiers import json_path, validate_field_path

SUPPORTED_UPDATE_OPERATORS = frozenset({"$set"})


@dataclass(frozen=True)
class SetField:
    """Replace the value at `field_path` with `value`."""

    field_path: str
    value: Any


@dataclass
class CompiledUpdate:
    """SQL expression for the new `document` value and its parameters."""

    sql: str
    params: list[Any] = field(default_factory=list)


def parse_update(update: Any) -> list[SetField]:
    if not isinstance(update, Mapping) or "$set" not in update:
        raise UnsupportedUpdateOperatorError("Only `$set` updates are supported")
    extra = [k for k in update if k not in SUPPORTED_UPDATE_OPERATORS]
    if extra:
        raise UnsupportedUpdateOperatorError(
            f"Unsupported update operator(s): {', '.join(map(str, extra))}; "
            "only `$set` is supported"
        )

    changes = update["$set"]
    if not isinstance(changes, Mapping) or not changes:
        raise UnsupportedUpdateOperatorError("`$set` requires a non-empty mapping of fields")

    fields: list[SetField] = []
    for path, value in changes.items():
        validate_field_path(path)
        if path.split(".")[0] == "_id":
            raise UnsupportedUpdateOperatorError("`$set` cannot modify the immutable field _id")
        fields.append(SetField(path, validate_value(value)))
    return fields


def compile_update(fields: list[SetField]) -> CompiledUpdate:
    """Wrap `document` in one json_set() per field, innermost first.

    Values are bound as JSON text and passed through json() so that objects,
    arrays, booleans and null keep their JSON types in the blob.
    """
    sql = "document"
    params: list[Any] = []
    for f in fields:
        sql = f"json_set({sql}, '{json_path(f.field_path)}', json(?))"
        params.append(encode(f.value))
    return CompiledUpdate(sql, params)
