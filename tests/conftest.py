"""Shared test fixtures for docstore tests."""

from __future__ import annotations

import pytest

from docstore import Docstore

PEOPLE = [
    {"age": 45, "country": "USA"},
    {"age": 55, "country": "USA"},
    {"age": 15, "country": "USA"},
    {"age": 25, "country": "MEX"},
    {"age": 25, "country": "MEX"},
    {"age": 15, "country": "MEX"},
]


@pytest.fixture
def tmp_db(tmp_path):
    """Create a temporary SQLite database path."""
    return str(tmp_path / "test.db")


@pytest.fixture
def store(tmp_db):
    """Create a Docstore with a temporary database and a `users` collection."""
    s = Docstore(tmp_db)
    s.create_collection("users")
    yield s
    s.close()


@pytest.fixture
def people(store):
    """A `people` collection seeded with age/country rows."""
    store.create_collection("people")
    store.insert_many("people", PEOPLE)
    return store
