"""Tests for storage target resolution and store opening."""

from __future__ import annotations

import pytest

from docstore import DocstoreConfig, open_docstore
from docstore.errors import InvalidIdentifierError, StorageBackendError
from docstore.storage import parse_storage_target


def test_parse_storage_target_defaults_to_memory() -> None:
    target = parse_storage_target()
    assert target.db_path == ":memory:"
    assert target.uri == "sqlite:///:memory:"


def test_parse_storage_target_plain_path() -> None:
    target = parse_storage_target(db_path="data.db")
    assert target.db_path == "data.db"
    assert target.uri == "sqlite:///data.db"


def test_parse_storage_target_sqlite_uri() -> None:
    target = parse_storage_target(storage_uri="sqlite:///tmp/example.db")
    assert target.db_path == "/tmp/example.db"


def test_parse_storage_target_sqlite_absolute_uri() -> None:
    target = parse_storage_target(storage_uri="sqlite:////var/lib/example.db")
    assert target.db_path == "/var/lib/example.db"


def test_parse_storage_target_sqlite_memory_uri() -> None:
    target = parse_storage_target(storage_uri="sqlite:///:memory:")
    assert target.db_path == ":memory:"


def test_parse_storage_target_unsupported_scheme() -> None:
    with pytest.raises(StorageBackendError):
        parse_storage_target(storage_uri="mongodb://localhost/test")


def test_parse_storage_target_conflicting_sqlite_raises() -> None:
    with pytest.raises(StorageBackendError):
        parse_storage_target(db_path="a.db", storage_uri="sqlite:///b.db")


def test_parse_storage_target_same_file_spelled_differently(tmp_path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)
    uri = f"sqlite:///{tmp_path / 'x.db'}"
    target = parse_storage_target(db_path="./x.db", storage_uri=uri)
    assert target.db_path == str(tmp_path / "x.db")
    assert parse_storage_target(db_path="sub/../x.db", storage_uri=uri).db_path == str(
        tmp_path / "x.db"
    )


def test_open_docstore_path(tmp_path) -> None:
    db_path = str(tmp_path / "docs.db")
    store = open_docstore(db_path)
    try:
        info = store.storage_info()
        assert info["backend"] == "sqlite"
        assert info["db_path"] == db_path
    finally:
        store.close()


def test_open_docstore_uri(tmp_path) -> None:
    db_path = tmp_path / "docs.db"
    store = open_docstore(storage_uri=f"sqlite:///{db_path}")
    try:
        store.create_collection("users")
        store.insert_one("users", {"_id": "a"})
    finally:
        store.close()
    assert db_path.exists()


def test_open_docstore_uses_config_path(tmp_path) -> None:
    db_path = str(tmp_path / "configured.db")
    store = open_docstore(config=DocstoreConfig(db_path=db_path))
    try:
        assert store.db_path == db_path
    finally:
        store.close()


def test_config_from_env(monkeypatch) -> None:
    monkeypatch.setenv("DOCSTORE_DB", "env.db")
    monkeypatch.setenv("DOCSTORE_TIMEOUT_SEC", "1.5")
    monkeypatch.setenv("DOCSTORE_JOURNAL_MODE", "DELETE")
    cfg = DocstoreConfig.from_env()
    assert cfg.db_path == "env.db"
    assert cfg.timeout_sec == 1.5
    assert cfg.journal_mode == "DELETE"


def test_journal_mode_is_validated(tmp_path) -> None:
    with pytest.raises(InvalidIdentifierError):
        open_docstore(str(tmp_path / "x.db"), config=DocstoreConfig(journal_mode="WAL; DROP"))
