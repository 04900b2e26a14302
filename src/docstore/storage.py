"""SQLite-backed document store: collection management and CRUD execution.

Each collection is one table with two columns: `_id` (TEXT PRIMARY KEY) and
`document` (the full JSON blob, `_id` included). Queries, updates and
pipelines are compiled by `docstore.predicates`, `docstore.updates` and
`docstore.aggregation`; this module binds and runs them.

A Docstore wraps a single sqlite3 connection and does no locking of its own.
SQLite allows one writer at a time: callers sharing an instance across threads
must serialize inserts, updates, deletes and DDL themselves (and reads too, if
they need read-your-writes).
"""

from __future__ import annotations

import functools
import json
import logging
import os
import re
import sqlite3
import uuid
from collections.abc import Iterator, Mapping, Sequence
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable
from urllib.parse import urlparse

from docstore.aggregation import compile_pipeline, parse_pipeline
from docstore.config import DocstoreConfig
from docstore.documents import decode_row, encode, validate_document
from docstore.errors import (
    CollectionNotFoundError,
    DocstoreError,
    DuplicateKeyError,
    InvalidDocumentError,
    StorageBackendError,
    UnsupportedOperatorError,
)
from docstore.identifiers import (
    json_extract,
    json_path,
    quote,
    validate_collection_name,
    validate_field_path,
    validate_identifier,
)
from docstore.predicates import (
    CompiledPredicate,
    InSet,
    RegexMatch,
    compile_clauses,
    compile_query,
    parse_query,
)
from docstore.updates import compile_update, parse_update

logger = logging.getLogger(__name__)


def _make_regexp(cache_size: int) -> Callable[[Any, Any], int]:
    """Build the REGEXP(pattern, value) SQL function.

    Invalid patterns never raise; they simply match nothing.
    """

    @functools.lru_cache(maxsize=cache_size)
    def _compile(pattern: str) -> re.Pattern[str]:
        return re.compile(pattern)

    def regexp(pattern: Any, value: Any) -> int:
        if pattern is None or value is None:
            return 0
        try:
            compiled = _compile(str(pattern))
        except re.error:
            return 0
        return 1 if compiled.search(str(value)) else 0

    return regexp


def _translate_error(operation: str, collection: str | None, err: sqlite3.Error) -> DocstoreError:
    """Map a sqlite3 failure onto the docstore error taxonomy."""
    msg = str(err)
    if isinstance(err, sqlite3.IntegrityError) and ("UNIQUE" in msg or "PRIMARY KEY" in msg):
        return DuplicateKeyError(collection or "?", msg)
    if isinstance(err, sqlite3.OperationalError) and "no such table" in msg and collection:
        return CollectionNotFoundError(collection)
    return StorageBackendError(operation, msg)


def index_name(collection: str, field_path: str) -> str:
    """Deterministic index name for a collection + field path.

    `:` cannot appear in either identifier, so distinct pairs never collide.
    """
    return f"idx:{collection}:{field_path}"


_JSON_TYPE_DECODERS: dict[str, Callable[[Any], Any]] = {
    "object": json.loads,
    "array": json.loads,
    "true": lambda _: True,
    "false": lambda _: False,
}


class Docstore:
    """Mongo-style collections over SQLite JSON columns."""

    def __init__(self, db_path: str | None = None, *, config: DocstoreConfig | None = None) -> None:
        self.config = config or DocstoreConfig()
        self.db_path = db_path or self.config.db_path
        self._conn = sqlite3.connect(
            self.db_path,
            timeout=self.config.timeout_sec,
            check_same_thread=self.config.check_same_thread,
        )
        if self.config.journal_mode and self.db_path != ":memory:":
            mode = validate_identifier(self.config.journal_mode, kind="journal mode")
            self._conn.execute(f"PRAGMA journal_mode={mode}")
        self._conn.create_function(
            "REGEXP", 2, _make_regexp(self.config.regex_cache_size), deterministic=True
        )
        self._in_transaction = False

    def close(self) -> None:
        self._conn.close()

    def __enter__(self) -> Docstore:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # --- Statement execution ---

    def _execute(
        self,
        operation: str,
        sql: str,
        params: Sequence[Any] = (),
        *,
        collection: str | None = None,
    ) -> sqlite3.Cursor:
        logger.debug("%s: %s [%d params]", operation, sql, len(params))
        try:
            return self._conn.execute(sql, params)
        except sqlite3.Error as e:
            raise _translate_error(operation, collection, e) from e

    def _write(
        self,
        operation: str,
        sql: str,
        params: Sequence[Any] = (),
        *,
        collection: str | None = None,
    ) -> sqlite3.Cursor:
        """Execute a mutating statement, committing unless inside transaction()."""
        cursor = self._execute(operation, sql, params, collection=collection)
        if not self._in_transaction:
            self._conn.commit()
        return cursor

    def _read(
        self,
        operation: str,
        collection: str,
        sql: str,
        params: Sequence[Any] = (),
    ) -> list[tuple[Any, ...]] | None:
        """Run a read; a missing collection yields None instead of an error."""
        try:
            return self._execute(operation, sql, params, collection=collection).fetchall()
        except CollectionNotFoundError:
            logger.warning("Collection '%s' does not exist", collection)
            return None

    @contextmanager
    def transaction(self) -> Iterator[None]:
        """Run the enclosed statements atomically; any exception rolls all of them back.

        Nested use joins the outer transaction.
        """
        if self._in_transaction:
            yield
            return
        if self._conn.in_transaction:
            self._conn.commit()
        self._execute("begin_transaction", "BEGIN IMMEDIATE")
        self._in_transaction = True
        try:
            yield
        except BaseException:
            self._conn.rollback()
            raise
        else:
            self._conn.commit()
        finally:
            self._in_transaction = False

    # --- Collection operations ---

    def create_collection(self, name: str) -> None:
        validate_collection_name(name)
        self._write(
            "create_collection",
            f"CREATE TABLE IF NOT EXISTS {quote(name)} ("
            "_id TEXT PRIMARY KEY, "
            "document JSON NOT NULL)",
            collection=name,
        )
        logger.info("Created collection '%s'", name)

    def drop_collection(self, name: str) -> dict[str, Any]:
        validate_collection_name(name)
        self._write("drop_collection", f"DROP TABLE IF EXISTS {quote(name)}", collection=name)
        logger.info("Dropped collection '%s'", name)
        return {"acknowledged": True}

    def rename_collection(self, old_name: str, new_name: str) -> dict[str, Any]:
        validate_collection_name(old_name)
        validate_collection_name(new_name)
        if not self.has_collection(old_name):
            raise CollectionNotFoundError(old_name)
        self._write(
            "rename_collection",
            f"ALTER TABLE {quote(old_name)} RENAME TO {quote(new_name)}",
            collection=old_name,
        )
        logger.info("Renamed collection '%s' to '%s'", old_name, new_name)
        return {"acknowledged": True}

    def create_index(
        self, name: str, field_path: str, *, unique: bool = False
    ) -> dict[str, Any]:
        """Index the JSON value at `field_path`; repeated calls are no-ops."""
        validate_collection_name(name)
        validate_field_path(field_path)
        unique_sql = "UNIQUE " if unique else ""
        self._write(
            "create_index",
            f"CREATE {unique_sql}INDEX IF NOT EXISTS {quote(index_name(name, field_path))} "
            f"ON {quote(name)} ({json_extract(field_path)})",
            collection=name,
        )
        logger.info("Created %sindex on '%s' (%s)", unique_sql.lower(), name, field_path)
        return {"acknowledged": True}

    def has_collection(self, name: str) -> bool:
        validate_collection_name(name)
        row = self._execute(
            "has_collection",
            "SELECT 1 FROM sqlite_master WHERE type = 'table' AND name = ?",
            (name,),
        ).fetchone()
        return row is not None

    def list_collection_names(self) -> list[str]:
        """Names of all tables shaped like a collection (`_id`, `document`)."""
        rows = self._execute(
            "list_collection_names",
            "SELECT name FROM sqlite_master "
            "WHERE type = 'table' AND name NOT LIKE 'sqlite_%' ORDER BY name",
        ).fetchall()
        names = []
        for (name,) in rows:
            cols = {
                r[0]
                for r in self._execute(
                    "list_collection_names", "SELECT name FROM pragma_table_info(?)", (name,)
                ).fetchall()
            }
            if cols == {"_id", "document"}:
                names.append(name)
        return names

    def storage_info(self) -> dict[str, Any]:
        return {
            "backend": "sqlite",
            "db_path": self.db_path,
            "sqlite_version": sqlite3.sqlite_version,
            "collections": len(self.list_collection_names()),
        }

    # --- Insert ---

    def _stamp_identity(self, doc: dict[str, Any]) -> tuple[str, str]:
        """Resolve `_id`, write it into the document and serialize it.

        Runs immediately before every insert so the primary key and the
        embedded `_id` are always the same value.
        """
        doc_id = doc.get("_id") or str(uuid.uuid4())
        doc["_id"] = doc_id
        return doc_id, encode(doc)

    def _insert_sql(self, collection: str) -> str:
        return f"INSERT INTO {quote(collection)} (_id, document) VALUES (?, ?)"

    def insert_one(self, collection: str, document: Mapping[str, Any]) -> dict[str, Any]:
        validate_collection_name(collection)
        doc_id, blob = self._stamp_identity(validate_document(document))
        self._write(
            "insert_one", self._insert_sql(collection), (doc_id, blob), collection=collection
        )
        return {"acknowledged": True, "insertedId": doc_id}

    def insert_many(
        self, collection: str, documents: Sequence[Mapping[str, Any]]
    ) -> dict[str, Any]:
        """Insert all documents or none of them."""
        validate_collection_name(collection)
        if isinstance(documents, Mapping) or not isinstance(documents, Sequence):
            raise InvalidDocumentError("insert_many expects a sequence of documents")
        docs = [validate_document(d) for d in documents]
        sql = self._insert_sql(collection)
        with self.transaction():
            for doc in docs:
                doc_id, blob = self._stamp_identity(doc)
                self._execute("insert_many", sql, (doc_id, blob), collection=collection)
        return {"acknowledged": True, "insertedCount": len(docs)}

    # --- Find ---

    def _select_documents(
        self,
        operation: str,
        collection: str,
        predicate: CompiledPredicate,
        *,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        sql = f"SELECT _id, document FROM {quote(collection)}{predicate.where_clause}"
        params = list(predicate.params)
        if limit is not None:
            sql += " LIMIT ?"
            params.append(limit)
        rows = self._read(operation, collection, sql, params)
        if rows is None:
            return []
        return [decode_row(r[0], r[1]) for r in rows]

    def find(self, collection: str, query: Mapping[str, Any] | None = None) -> list[dict[str, Any]]:
        """Return all documents matching `query`, in storage order.

        A missing collection gives an empty list; a malformed query still raises.
        """
        validate_collection_name(collection)
        return self._select_documents("find", collection, compile_query(query))

    def find_one(
        self, collection: str, query: Mapping[str, Any] | None = None
    ) -> dict[str, Any] | None:
        validate_collection_name(collection)
        docs = self._select_documents("find_one", collection, compile_query(query), limit=1)
        return docs[0] if docs else None

    def find_by_id(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        validate_collection_name(collection)
        docs = self._select_documents(
            "find_by_id", collection, CompiledPredicate("_id = ?", [doc_id])
        )
        return docs[0] if docs else None

    def _restricted_predicate(
        self, query: Mapping[str, Any], op: str, clause_type: type
    ) -> CompiledPredicate:
        clauses = parse_query(query, allowed=frozenset({op}))
        if not clauses:
            raise UnsupportedOperatorError("<query>", op, "query must name at least one field")
        for clause in clauses:
            if not isinstance(clause, clause_type):
                raise UnsupportedOperatorError(
                    clause.field_path, "equality", f"only {op} is accepted"
                )
        return compile_clauses(clauses)

    def find_with_in(self, collection: str, query: Mapping[str, Any]) -> list[dict[str, Any]]:
        """Like find(), but every field must use `$in`."""
        validate_collection_name(collection)
        predicate = self._restricted_predicate(query, "$in", InSet)
        return self._select_documents("find_with_in", collection, predicate)

    def find_with_regex(self, collection: str, query: Mapping[str, Any]) -> list[dict[str, Any]]:
        """Like find(), but every field must use `$regex`."""
        validate_collection_name(collection)
        predicate = self._restricted_predicate(query, "$regex", RegexMatch)
        return self._select_documents("find_with_regex", collection, predicate)

    # --- Update / Delete ---

    def _single_row(self, collection: str, predicate: CompiledPredicate) -> str:
        # Which row wins among several matches is up to SQLite; no order is promised.
        return f"rowid = (SELECT rowid FROM {quote(collection)}{predicate.where_clause} LIMIT 1)"

    def update_one(
        self,
        collection: str,
        query: Mapping[str, Any],
        update: Mapping[str, Any],
    ) -> dict[str, Any]:
        """Apply a `$set` update to at most one matching document.

        When several documents match, the one updated is chosen by the storage
        engine and is not guaranteed to be the first inserted.
        """
        validate_collection_name(collection)
        compiled_update = compile_update(parse_update(update))
        predicate = compile_query(query)
        sql = (
            f"UPDATE {quote(collection)} SET document = {compiled_update.sql} "
            f"WHERE {self._single_row(collection, predicate)}"
        )
        cursor = self._write(
            "update_one",
            sql,
            [*compiled_update.params, *predicate.params],
            collection=collection,
        )
        return {"acknowledged": True, "modifiedCount": cursor.rowcount}

    def delete_one(self, collection: str, query: Mapping[str, Any]) -> dict[str, Any]:
        """Delete at most one matching document (engine-chosen when several match)."""
        validate_collection_name(collection)
        predicate = compile_query(query)
        sql = f"DELETE FROM {quote(collection)} WHERE {self._single_row(collection, predicate)}"
        cursor = self._write("delete_one", sql, predicate.params, collection=collection)
        return {"acknowledged": True, "deletedCount": cursor.rowcount}

    # --- Counting / distinct / aggregation ---

    def count_documents(self, collection: str, query: Mapping[str, Any] | None = None) -> int:
        validate_collection_name(collection)
        predicate = compile_query(query)
        rows = self._read(
            "count_documents",
            collection,
            f"SELECT COUNT(*) FROM {quote(collection)}{predicate.where_clause}",
            predicate.params,
        )
        return rows[0][0] if rows else 0

    def distinct(self, collection: str, field_path: str) -> list[Any]:
        """Distinct non-null values at `field_path`, in no particular order.

        Explicit JSON `null` values are skipped along with missing fields, so
        `null` never appears in the result.
        """
        validate_collection_name(collection)
        value_expr = json_extract(field_path)
        sql = (
            f"SELECT DISTINCT {value_expr}, json_type(document, '{json_path(field_path)}') "
            f"FROM {quote(collection)} WHERE {value_expr} IS NOT NULL"
        )
        rows = self._read("distinct", collection, sql)
        if rows is None:
            return []
        values = []
        for value, json_type in rows:
            decoder = _JSON_TYPE_DECODERS.get(json_type)
            values.append(decoder(value) if decoder else value)
        return values

    def aggregate(
        self, collection: str, pipeline: Sequence[Mapping[str, Any]]
    ) -> list[dict[str, Any]]:
        """Run a `$match`/`$group` pipeline.

        With a `$group` stage each row is `{"groupKey": ..., <alias>: ...}`;
        without one the matching documents are returned. Group order is
        unspecified.
        """
        validate_collection_name(collection)
        compiled = compile_pipeline(collection, parse_pipeline(pipeline))
        rows = self._read("aggregate", collection, compiled.sql, compiled.params)
        if rows is None:
            return []
        if compiled.group is None:
            return [decode_row(r[0], r[1]) for r in rows]
        fields = compiled.output_fields
        return [dict(zip(fields, row)) for row in rows]


@dataclass(frozen=True)
class StorageTarget:
    """Resolved storage target from a plain path or a sqlite:// URI."""

    uri: str
    db_path: str


def parse_storage_target(
    db_path: str | None = None,
    storage_uri: str | None = None,
) -> StorageTarget:
    """Resolve the SQLite file from a db_path or sqlite:// URI (in-memory by default)."""
    if storage_uri is None and db_path is None:
        db_path = ":memory:"

    if storage_uri is None and db_path is not None:
        return StorageTarget(uri=f"sqlite:///{db_path}", db_path=db_path)

    assert storage_uri is not None
    parsed = urlparse(storage_uri)
    if parsed.scheme != "sqlite":
        raise StorageBackendError(
            "parse_storage_uri",
            f"Unsupported storage URI scheme '{parsed.scheme}' for '{storage_uri}'",
        )

    sqlite_path = parsed.path
    if parsed.netloc:
        sqlite_path = f"{parsed.netloc}{sqlite_path}"
    elif sqlite_path.startswith("//"):
        # sqlite:////abs/path -> /abs/path
        sqlite_path = sqlite_path[1:]
    if sqlite_path == "/:memory:":
        sqlite_path = ":memory:"
    if not sqlite_path:
        raise StorageBackendError("parse_storage_uri", f"Invalid sqlite URI: {storage_uri}")
    if db_path is not None and os.path.abspath(db_path) != os.path.abspath(sqlite_path):
        raise StorageBackendError(
            "parse_storage_uri",
            f"Conflicting db_path '{db_path}' and storage_uri '{storage_uri}'",
        )
    return StorageTarget(uri=storage_uri, db_path=sqlite_path)


def open_docstore(
    db_path: str | None = None,
    *,
    storage_uri: str | None = None,
    config: DocstoreConfig | None = None,
) -> Docstore:
    """Open a Docstore from a file path or sqlite:// URI."""
    cfg = config or DocstoreConfig()
    if db_path is None and storage_uri is None and cfg.db_path:
        db_path = cfg.db_path
    target = parse_storage_target(db_path=db_path, storage_uri=storage_uri)
    return Docstore(target.db_path, config=cfg)


__all__ = [
    "Docstore",
    "StorageTarget",
    "index_name",
    "open_docstore",
    "parse_storage_target",
]
