"""docstore info — show store status and per-collection counts."""

from __future__ import annotations

import os

import typer

from docstore.cli import _exitcodes as ec
from docstore.cli._output import print_error
from docstore.cli._storage import resolve_storage_binding, run_command
from docstore.storage import parse_storage_target


def info_cmd(
    counts: bool = typer.Option(False, "--counts", help="Show document count per collection"),
) -> None:
    """Show store status."""
    db_path, storage_uri = resolve_storage_binding()
    target = parse_storage_target(db_path=db_path, storage_uri=storage_uri)
    if target.db_path != ":memory:" and not os.path.exists(target.db_path):
        print_error(f"Database not found: {target.db_path}")
        raise typer.Exit(ec.DATABASE_ERROR)

    def _info(store):
        data = store.storage_info()
        if os.path.exists(target.db_path):
            data["file_size_bytes"] = os.path.getsize(target.db_path)
        if counts:
            data["documents"] = {
                name: store.count_documents(name) for name in store.list_collection_names()
            }
        return data

    run_command(_info)
