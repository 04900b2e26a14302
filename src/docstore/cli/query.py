"""docstore query — run manual reads against a collection."""

from __future__ import annotations

from typing import Optional

import typer

from docstore.cli._output import parse_json_arg
from docstore.cli._storage import run_command

app = typer.Typer(no_args_is_help=True)


@app.command(name="find")
def find_cmd(
    name: str = typer.Argument(..., help="Collection name"),
    query: Optional[str] = typer.Argument(None, help="Query JSON (default: all documents)"),
    one: bool = typer.Option(False, "--one", help="Return only one matching document"),
    doc_id: Optional[str] = typer.Option(None, "--id", help="Look up a single _id"),
) -> None:
    """Find documents matching a query."""

    def _find(store):
        if doc_id is not None:
            return store.find_by_id(name, doc_id)
        q = parse_json_arg(query, name="QUERY", default={})
        if one:
            return store.find_one(name, q)
        return store.find(name, q)

    run_command(_find)


@app.command(name="count")
def count_cmd(
    name: str = typer.Argument(..., help="Collection name"),
    query: Optional[str] = typer.Argument(None, help="Query JSON (default: all documents)"),
) -> None:
    """Count documents matching a query."""
    run_command(
        lambda store: store.count_documents(name, parse_json_arg(query, name="QUERY", default={}))
    )


@app.command(name="distinct")
def distinct_cmd(
    name: str = typer.Argument(..., help="Collection name"),
    field_path: str = typer.Argument(..., help="Dotted field path"),
) -> None:
    """List distinct values of a field."""
    run_command(lambda store: store.distinct(name, field_path))


@app.command(name="aggregate")
def aggregate_cmd(
    name: str = typer.Argument(..., help="Collection name"),
    pipeline: str = typer.Argument(..., help="Pipeline JSON array of $match/$group stages"),
) -> None:
    """Run an aggregation pipeline."""
    run_command(lambda store: store.aggregate(name, parse_json_arg(pipeline, name="PIPELINE")))
