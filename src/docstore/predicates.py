"""Query objects: parsing into predicate clauses and compilation to SQL.

A query object maps field paths to either a literal (implicit equality) or an
operator object with exactly one key::

    {"name": "Alice", "age": {"$gte": 21}, "tier": {"$in": ["Gold", "Silver"]}}

All fields are AND-combined. Parameters are collected in field order.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Union

from docstore.errors import UnsupportedOperatorError
from docstore.identifiers import json_extract, validate_field_path

COMPARISON_OPERATORS: dict[str, str] = {
    "$eq": "=",
    "$ne": "!=",
    "$gt": ">",
    "$gte": ">=",
    "$lt": "<",
    "$lte": "<=",
}

# Operators accepted by find/count/update/delete.
QUERY_OPERATORS = frozenset({"$in", "$regex", *COMPARISON_OPERATORS})
# Operators accepted inside a `$match` aggregation stage.
MATCH_OPERATORS = frozenset(COMPARISON_OPERATORS)


@dataclass(frozen=True)
class Equals:
    """`field: literal`"""

    field_path: str
    value: Any


@dataclass(frozen=True)
class InSet:
    """`field: {"$in": [v1, ..., vn]}`"""

    field_path: str
    values: tuple[Any, ...]


@dataclass(frozen=True)
class RegexMatch:
    """`field: {"$regex": pattern}`"""

    field_path: str
    pattern: str


@dataclass(frozen=True)
class Compare:
    """`field: {"$gt": value}` and the other comparison operators."""

    field_path: str
    op: str  # one of COMPARISON_OPERATORS
    value: Any


Clause = Union[Equals, InSet, RegexMatch, Compare]


@dataclass
class CompiledPredicate:
    """A boolean SQL expression and its positional parameters.

    An empty `sql` string means "match every row".
    """

    sql: str = ""
    params: list[Any] = field(default_factory=list)

    @property
    def where_clause(self) -> str:
        return f" WHERE {self.sql}" if self.sql else ""


def _is_operator_object(condition: Any) -> bool:
    return (
        isinstance(condition, Mapping)
        and len(condition) > 0
        and any(isinstance(k, str) and k.startswith("$") for k in condition)
    )


def parse_clause(
    field_path: str,
    condition: Any,
    *,
    allowed: frozenset[str] = QUERY_OPERATORS,
) -> Clause:
    """Parse one `field: condition` pair into a predicate clause."""
    validate_field_path(field_path)

    if not _is_operator_object(condition):
        return Equals(field_path, condition)

    if len(condition) != 1:
        ops = ", ".join(str(k) for k in condition)
        raise UnsupportedOperatorError(field_path, ops, "expected exactly one operator")

    op, operand = next(iter(condition.items()))
    if op not in allowed:
        raise UnsupportedOperatorError(field_path, op)

    if op == "$in":
        if not isinstance(operand, (list, tuple)):
            raise UnsupportedOperatorError(field_path, op, "operand must be an array")
        return InSet(field_path, tuple(operand))
    if op == "$regex":
        if not isinstance(operand, str):
            raise UnsupportedOperatorError(field_path, op, "pattern must be a string")
        return RegexMatch(field_path, operand)
    return Compare(field_path, op, operand)


def parse_query(
    query: Mapping[str, Any] | None,
    *,
    allowed: frozenset[str] = QUERY_OPERATORS,
) -> list[Clause]:
    """Parse a query object into clauses, preserving field order."""
    if query is None:
        return []
    if not isinstance(query, Mapping):
        raise UnsupportedOperatorError("<query>", type(query).__name__, "query must be a mapping")
    return [parse_clause(path, cond, allowed=allowed) for path, cond in query.items()]


def bind_value(value: Any) -> Any:
    """Convert a query literal to the value SQLite compares json_extract output with.

    json_extract returns objects and arrays as minified JSON text.
    """
    if isinstance(value, (Mapping, list, tuple)):
        return json.dumps(value, separators=(",", ":"))
    return value


def compile_clause(clause: Clause, params: list[Any]) -> str:
    """Compile a single clause to SQL, appending its parameters."""
    if isinstance(clause, Equals):
        return _compile_comparison(clause.field_path, "$eq", clause.value, params)
    if isinstance(clause, Compare):
        return _compile_comparison(clause.field_path, clause.op, clause.value, params)
    if isinstance(clause, InSet):
        json_col = json_extract(clause.field_path)
        placeholders = ", ".join("?" for _ in clause.values)
        params.extend(bind_value(v) for v in clause.values)
        return f"{json_col} IN ({placeholders})"
    if isinstance(clause, RegexMatch):
        params.append(clause.pattern)
        return f"{json_extract(clause.field_path)} REGEXP ?"
    raise ValueError(f"Unknown predicate clause type: {type(clause)}")


def _compile_comparison(field_path: str, op: str, value: Any, params: list[Any]) -> str:
    json_col = json_extract(field_path)
    # `= NULL` never matches in SQL; null literals mean "missing or null".
    if value is None and op == "$eq":
        return f"{json_col} IS NULL"
    if value is None and op == "$ne":
        return f"{json_col} IS NOT NULL"
    params.append(bind_value(value))
    return f"{json_col} {COMPARISON_OPERATORS[op]} ?"


def compile_clauses(clauses: list[Clause]) -> CompiledPredicate:
    params: list[Any] = []
    parts = [compile_clause(c, params) for c in clauses]
    return CompiledPredicate(" AND ".join(parts), params)


def compile_query(
    query: Mapping[str, Any] | None,
    *,
    allowed: frozenset[str] = QUERY_OPERATORS,
) -> CompiledPredicate:
    """Parse and compile a query object in one step."""
    return compile_clauses(parse_query(query, allowed=allowed))
