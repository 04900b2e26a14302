"""CLI helpers for opening the store selected by global options."""

from __future__ import annotations

from typing import Any, Callable

import typer

from docstore.cli import _exitcodes as ec
from docstore.cli._output import print_data, print_error
from docstore.config import DocstoreConfig
from docstore.errors import (
    CollectionNotFoundError,
    DocstoreError,
    DuplicateKeyError,
    StorageBackendError,
)
from docstore.storage import Docstore, open_docstore


def resolve_storage_binding() -> tuple[str | None, str | None]:
    """Return (db_path, storage_uri) from CLI state."""
    from docstore.cli import state

    if state.storage_uri:
        return None, state.storage_uri
    return state.db, None


def open_store() -> Docstore:
    """Open the Docstore selected by --db / --storage-uri."""
    db_path, storage_uri = resolve_storage_binding()
    return open_docstore(db_path, storage_uri=storage_uri, config=DocstoreConfig.from_env())


def _exit_code_for(err: Exception) -> int:
    if isinstance(err, StorageBackendError):
        return ec.DATABASE_ERROR
    if isinstance(err, (CollectionNotFoundError, DuplicateKeyError)):
        return ec.EXECUTION_FAILURE
    if isinstance(err, (DocstoreError, ValueError)):
        return ec.USAGE_ERROR
    return ec.GENERAL_ERROR


def run_command(action: Callable[[Docstore], Any]) -> None:
    """Open the store, run `action`, print its result and close the store.

    Errors are reported on stderr and mapped to an exit code.
    """
    from docstore.cli import state

    try:
        store = open_store()
    except Exception as e:
        print_error(f"Cannot open store: {e}")
        raise typer.Exit(ec.DATABASE_ERROR)

    try:
        print_data(action(store), fmt=state.output_format)
    except typer.Exit:
        raise
    except Exception as e:
        print_error(str(e))
        raise typer.Exit(_exit_code_for(e))
    finally:
        store.close()
