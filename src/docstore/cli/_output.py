"""Output formatting helpers for the CLI."""

from __future__ import annotations

import json
import sys
from typing import Any

import yaml


def print_data(data: Any, *, fmt: str = "json") -> None:
    """Print a result as JSON (default) or YAML."""
    if fmt == "yaml":
        print(yaml.safe_dump(data, default_flow_style=False, sort_keys=False), end="")
        return
    print(json.dumps(data, indent=2, default=str))


def print_error(msg: str) -> None:
    """Print an error message to stderr."""
    print(f"Error: {msg}", file=sys.stderr)


def parse_json_arg(raw: str | None, *, name: str, default: Any = None) -> Any:
    """Decode a JSON command-line argument, raising ValueError with the argument name."""
    if raw is None:
        return default
    try:
        return json.loads(raw)
    except json.JSONDecodeError as e:
        raise ValueError(f"{name} is not valid JSON: {e}") from e
