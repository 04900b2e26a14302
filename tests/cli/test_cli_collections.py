"""Tests for docstore collections commands."""

import json

from docstore import Docstore
from tests.cli.conftest import invoke


def test_collections_list(runner, seeded_db):
    result = invoke(runner, ["collections", "list"], seeded_db)
    assert result.exit_code == 0
    assert json.loads(result.output) == ["people", "users"]


def test_collections_create_and_drop(runner, cli_db):
    result = invoke(runner, ["collections", "create", "orders"], cli_db)
    assert result.exit_code == 0
    assert json.loads(result.output) == {"acknowledged": True}

    result = invoke(runner, ["collections", "drop", "orders"], cli_db)
    assert result.exit_code == 0
    with Docstore(cli_db) as store:
        assert not store.has_collection("orders")


def test_collections_create_invalid_name(runner, cli_db):
    result = invoke(runner, ["collections", "create", "bad-name"], cli_db)
    assert result.exit_code == 2
    assert "Error:" in result.output


def test_collections_rename(runner, seeded_db):
    result = invoke(runner, ["collections", "rename", "users", "members"], seeded_db)
    assert result.exit_code == 0
    with Docstore(seeded_db) as store:
        assert store.count_documents("members") == 2


def test_collections_rename_missing(runner, seeded_db):
    result = invoke(runner, ["collections", "rename", "ghosts", "spirits"], seeded_db)
    assert result.exit_code == 3
    assert "ghosts" in result.output


def test_collections_unique_index(runner, seeded_db):
    result = invoke(runner, ["collections", "index", "users", "name", "--unique"], seeded_db)
    assert result.exit_code == 0

    result = invoke(runner, ["docs", "insert", "users", '{"name": "Alice"}'], seeded_db)
    assert result.exit_code == 3


def test_collections_yaml_output(runner, seeded_db):
    result = invoke(runner, ["--format", "yaml", "collections", "list"], seeded_db)
    assert result.exit_code == 0
    assert "- people" in result.output
    assert "- users" in result.output
