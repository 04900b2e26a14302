"""docstore collections — collection and index management."""

from __future__ import annotations

import typer

from docstore.cli._storage import run_command

app = typer.Typer(no_args_is_help=True)


@app.command(name="list")
def list_cmd() -> None:
    """List collection names."""
    run_command(lambda store: store.list_collection_names())


@app.command(name="create")
def create_cmd(name: str = typer.Argument(..., help="Collection name")) -> None:
    """Create a collection (no-op if it exists)."""

    def _create(store):
        store.create_collection(name)
        return {"acknowledged": True}

    run_command(_create)


@app.command(name="drop")
def drop_cmd(name: str = typer.Argument(..., help="Collection name")) -> None:
    """Drop a collection and all of its documents."""
    run_command(lambda store: store.drop_collection(name))


@app.command(name="rename")
def rename_cmd(
    old_name: str = typer.Argument(..., help="Current collection name"),
    new_name: str = typer.Argument(..., help="New collection name"),
) -> None:
    """Rename a collection, keeping its documents."""
    run_command(lambda store: store.rename_collection(old_name, new_name))


@app.command(name="index")
def index_cmd(
    name: str = typer.Argument(..., help="Collection name"),
    field_path: str = typer.Argument(..., help="Dotted field path to index"),
    unique: bool = typer.Option(False, "--unique", help="Enforce unique values"),
) -> None:
    """Create an index over a JSON field."""
    run_command(lambda store: store.create_index(name, field_path, unique=unique))
