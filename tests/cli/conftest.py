"""Shared fixtures for CLI tests."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from typer.testing import CliRunner

from docstore import Docstore
from docstore.cli import app
from tests.conftest import PEOPLE

if TYPE_CHECKING:
    from click.testing import Result


@pytest.fixture
def runner():
    """Create a CLI test runner."""
    return CliRunner()


@pytest.fixture
def cli_db(tmp_path):
    """Create a temp DB path for the CLI to open."""
    db_path = str(tmp_path / "cli_test.db")
    return db_path


@pytest.fixture
def seeded_db(cli_db):
    """Create a DB with a `users` and a `people` collection."""
    with Docstore(cli_db) as store:
        store.create_collection("users")
        store.insert_many(
            "users",
            [
                {"_id": "u1", "name": "Alice", "age": 30, "tier": "Gold"},
                {"_id": "u2", "name": "Bob", "age": 25, "tier": "Silver"},
            ],
        )
        store.create_collection("people")
        store.insert_many("people", PEOPLE)
    return cli_db


def invoke(runner: CliRunner, args: list[str], db_path: str | None = None) -> "Result":
    """Invoke CLI with proper state setup."""
    if db_path:
        # Inject --db before subcommand
        args = ["--db", db_path] + args
    result = runner.invoke(app, args, catch_exceptions=False)
    return result
