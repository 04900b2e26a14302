"""docstore docs — write documents."""

from __future__ import annotations

import typer

from docstore.cli._output import parse_json_arg
from docstore.cli._storage import run_command

app = typer.Typer(no_args_is_help=True)


@app.command(name="insert")
def insert_cmd(
    name: str = typer.Argument(..., help="Collection name"),
    document: str = typer.Argument(..., help="Document JSON, or a JSON array for insert-many"),
) -> None:
    """Insert one document, or all documents of a JSON array atomically."""

    def _insert(store):
        data = parse_json_arg(document, name="DOCUMENT")
        if isinstance(data, list):
            return store.insert_many(name, data)
        return store.insert_one(name, data)

    run_command(_insert)


@app.command(name="update")
def update_cmd(
    name: str = typer.Argument(..., help="Collection name"),
    query: str = typer.Argument(..., help="Query JSON"),
    update: str = typer.Argument(..., help='Update JSON, e.g. {"$set": {"age": 31}}'),
) -> None:
    """Apply a $set update to one matching document."""
    run_command(
        lambda store: store.update_one(
            name,
            parse_json_arg(query, name="QUERY"),
            parse_json_arg(update, name="UPDATE"),
        )
    )


@app.command(name="delete")
def delete_cmd(
    name: str = typer.Argument(..., help="Collection name"),
    query: str = typer.Argument(..., help="Query JSON"),
) -> None:
    """Delete one matching document."""
    run_command(lambda store: store.delete_one(name, parse_json_arg(query, name="QUERY")))
