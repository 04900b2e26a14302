"""Identifier validation for names and paths spliced into SQL text.

Collection names, field paths and output aliases cannot be bound as SQL
parameters, so every one of them passes through this module before it is
placed into a statement. Values are never checked here; they are always bound.
"""

from __future__ import annotations

import re

from docstore.errors import InvalidIdentifierError

_SEGMENT_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")


def is_valid_segment(segment: object) -> bool:
    return isinstance(segment, str) and _SEGMENT_RE.fullmatch(segment) is not None


def validate_identifier(name: object, *, kind: str = "identifier") -> str:
    """Validate a single identifier (collection name, path segment or alias)."""
    if not is_valid_segment(name):
        raise InvalidIdentifierError(name, kind=kind)
    return name  # type: ignore[return-value]


def validate_collection_name(name: object) -> str:
    return validate_identifier(name, kind="collection name")


def validate_field_path(path: object) -> str:
    """Validate a dotted field path; every segment must be a valid identifier."""
    if not isinstance(path, str) or not path:
        raise InvalidIdentifierError(path, kind="field path")
    for segment in path.split("."):
        if not is_valid_segment(segment):
            raise InvalidIdentifierError(path, kind="field path")
    return path


def json_path(field_path: str) -> str:
    """Convert a validated dotted field path to a JSON path (`a.b` -> `$.a.b`)."""
    return f"$.{validate_field_path(field_path)}"


def json_extract(field_path: str, column: str = "document") -> str:
    """SQL fragment extracting the value at `field_path` from a JSON column."""
    return f"json_extract({column}, '{json_path(field_path)}')"


def quote(name: str) -> str:
    """Double-quote an already validated identifier for use in SQL text."""
    return f'"{name}"'
