"""Configuration for docstore connections."""

from __future__ import annotations

import os
from dataclasses import dataclass


@dataclass
class DocstoreConfig:
    """Configuration for a Docstore connection."""

    db_path: str = ":memory:"
    timeout_sec: float = 5.0
    journal_mode: str | None = "WAL"
    check_same_thread: bool = True
    regex_cache_size: int = 128

    @classmethod
    def from_env(cls) -> DocstoreConfig:
        """Build a config from DOCSTORE_* environment variables."""
        cfg = cls()
        if db_path := os.getenv("DOCSTORE_DB"):
            cfg.db_path = db_path
        if timeout := os.getenv("DOCSTORE_TIMEOUT_SEC"):
            cfg.timeout_sec = float(timeout)
        if journal_mode := os.getenv("DOCSTORE_JOURNAL_MODE"):
            cfg.journal_mode = journal_mode
        return cfg
