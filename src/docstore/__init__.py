"""docstore: Mongo-style document collections persisted in SQLite JSON columns."""

__version__ = "0.1.0"

from docstore.config import DocstoreConfig
from docstore.errors import (
    CollectionNotFoundError,
    DocstoreError,
    DuplicateKeyError,
    InvalidDocumentError,
    InvalidIdentifierError,
    MissingGroupKeyError,
    StorageBackendError,
    UnsupportedAggregationOperatorError,
    UnsupportedOperatorError,
    UnsupportedPipelineStageError,
    UnsupportedUpdateOperatorError,
)
from docstore.storage import Docstore, open_docstore

__all__ = [
    "__version__",
    "Docstore",
    "DocstoreConfig",
    "open_docstore",
    "DocstoreError",
    "InvalidIdentifierError",
    "UnsupportedOperatorError",
    "UnsupportedUpdateOperatorError",
    "UnsupportedPipelineStageError",
    "UnsupportedAggregationOperatorError",
    "MissingGroupKeyError",
    "InvalidDocumentError",
    "DuplicateKeyError",
    "CollectionNotFoundError",
    "StorageBackendError",
]
