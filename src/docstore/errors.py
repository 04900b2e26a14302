"""Structured error types for docstore."""

from __future__ import annotations


class DocstoreError(Exception):
    """Base error for all docstore errors."""


class InvalidIdentifierError(DocstoreError):
    """Raised when a collection name, field path or alias is not a safe identifier."""

    def __init__(
        self, identifier: object, *, kind: str = "identifier", detail: str | None = None
    ) -> None:
        self.identifier = identifier
        self.kind = kind
        detail = detail or "each segment must match [A-Za-z_][A-Za-z0-9_]*"
        super().__init__(f"Invalid {kind} {identifier!r}: {detail}")


class UnsupportedOperatorError(DocstoreError):
    """Raised for an unrecognized or malformed query operator."""

    def __init__(self, field_path: str, operator: str, detail: str | None = None) -> None:
        self.field_path = field_path
        self.operator = operator
        message = f"Unsupported operator '{operator}' for field '{field_path}'"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class UnsupportedUpdateOperatorError(DocstoreError):
    """Raised when an update object is not a plain `$set`."""


class UnsupportedPipelineStageError(DocstoreError):
    """Raised for an aggregation stage other than `$match` or `$group`."""

    def __init__(self, stage: str) -> None:
        self.stage = stage
        super().__init__(f"Unsupported pipeline stage: {stage}")


class UnsupportedAggregationOperatorError(DocstoreError):
    """Raised for a `$group` accumulator other than $sum/$avg/$count/$min/$max."""

    def __init__(self, alias: str, operator: str) -> None:
        self.alias = alias
        self.operator = operator
        super().__init__(
            f"Unsupported aggregation operator '{operator}' for output field '{alias}'"
        )


class MissingGroupKeyError(DocstoreError):
    """Raised when a `$group` stage has no `_id` grouping field."""

    def __init__(self) -> None:
        super().__init__("$group stage must include an _id field for grouping.")


class InvalidDocumentError(DocstoreError):
    """Raised when a document is not a JSON-representable mapping."""


class DuplicateKeyError(DocstoreError):
    """Raised on a primary-key (`_id`) or unique-index violation."""

    def __init__(self, collection: str, detail: str) -> None:
        self.collection = collection
        self.detail = detail
        super().__init__(f"Duplicate key in collection '{collection}': {detail}")


class CollectionNotFoundError(DocstoreError):
    """Raised when a non-idempotent operation targets a missing collection."""

    def __init__(self, collection: str) -> None:
        self.collection = collection
        super().__init__(f"Collection '{collection}' does not exist")


class StorageBackendError(DocstoreError):
    """Raised when backend storage operations fail."""

    def __init__(self, operation: str, detail: str) -> None:
        self.operation = operation
        self.detail = detail
        super().__init__(f"Storage backend error during {operation}: {detail}")
