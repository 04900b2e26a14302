"""Document validation, encoding and row decoding."""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any

from pydantic import JsonValue, TypeAdapter, ValidationError

from docstore.errors import InvalidDocumentError

_DOCUMENT_ADAPTER: TypeAdapter[dict[str, JsonValue]] = TypeAdapter(dict[str, JsonValue])
_VALUE_ADAPTER: TypeAdapter[JsonValue] = TypeAdapter(JsonValue)


def validate_document(document: Any) -> dict[str, Any]:
    """Return a JSON-safe copy of `document` or raise InvalidDocumentError."""
    if not isinstance(document, Mapping):
        raise InvalidDocumentError(
            f"Document must be a mapping, got {type(document).__name__}"
        )
    try:
        doc = _DOCUMENT_ADAPTER.validate_python(dict(document))
    except ValidationError as e:
        raise InvalidDocumentError(f"Document is not JSON-representable: {e}") from e
    doc_id = doc.get("_id")
    if doc_id is not None and not isinstance(doc_id, str):
        raise InvalidDocumentError(f"_id must be a string, got {type(doc_id).__name__}")
    return doc


def validate_value(value: Any) -> Any:
    try:
        return _VALUE_ADAPTER.validate_python(value)
    except ValidationError as e:
        raise InvalidDocumentError(f"Value is not JSON-representable: {e}") from e


def encode(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"))


def decode_row(row_id: str, document_json: str) -> dict[str, Any]:
    """Rebuild a document from a row; the primary key wins over the blob's `_id`."""
    doc = json.loads(document_json) if document_json else {}
    doc["_id"] = row_id
    return doc
