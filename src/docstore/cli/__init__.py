"""docstore CLI: operator console for inspecting and editing a document store."""

from __future__ import annotations

import logging
from typing import Optional

import typer
from click.core import ParameterSource

from docstore.cli import collection_cmd, docs_cmd, info, query

app = typer.Typer(
    name="docstore",
    help="docstore CLI: inspect and edit Mongo-style collections in a SQLite file.",
    no_args_is_help=True,
)


class _State:
    """Global CLI state shared across subcommands."""

    db: str = "docstore.db"
    storage_uri: str | None = None
    output_format: str = "json"


state = _State()


def _version_callback(value: bool) -> None:
    if value:
        from docstore import __version__

        print(f"docstore {__version__}")
        raise typer.Exit()


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    db: Optional[str] = typer.Option(
        None,
        "--db",
        envvar="DOCSTORE_DB",
        help="SQLite database file path (default: docstore.db)",
    ),
    storage_uri: Optional[str] = typer.Option(
        None,
        "--storage-uri",
        envvar="DOCSTORE_STORAGE_URI",
        help="Storage URI (e.g. sqlite:///docstore.db)",
    ),
    output_format: str = typer.Option("json", "--format", help="Output format: json or yaml"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log compiled statements"),
    version: bool = typer.Option(
        False, "--version", help="Show version", is_eager=True, callback=_version_callback
    ),
) -> None:
    """Global options for all docstore commands."""
    from docstore.storage import parse_storage_target

    if output_format not in ("json", "yaml"):
        raise typer.BadParameter("--format must be 'json' or 'yaml'")

    resolved_uri = storage_uri
    # Explicit --db overrides DOCSTORE_STORAGE_URI taken from the environment.
    if (
        ctx.get_parameter_source("db") == ParameterSource.COMMANDLINE
        and ctx.get_parameter_source("storage_uri") == ParameterSource.ENVIRONMENT
    ):
        resolved_uri = None
    if resolved_uri:
        try:
            parse_storage_target(storage_uri=resolved_uri)
        except Exception as e:
            raise typer.BadParameter(str(e))

    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")

    state.db = db or "docstore.db"
    state.storage_uri = resolved_uri
    state.output_format = output_format
    if ctx.invoked_subcommand is None and not version:
        print(ctx.get_help())
        raise typer.Exit()


# Register subcommand groups
app.add_typer(collection_cmd.app, name="collections", help="Create, drop, rename and index")
app.add_typer(docs_cmd.app, name="docs", help="Insert, update and delete documents")
app.add_typer(query.app, name="query", help="Find, count, distinct and aggregate")

# Register top-level commands
app.command(name="info")(info.info_cmd)


def main() -> None:
    """Entry point for the docstore CLI."""
    app()
