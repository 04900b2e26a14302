"""Aggregation pipelines: `$match` and `$group` stages folded into one statement.

Example::

    [
        {"$match": {"age": {"$gt": 15}}},
        {"$group": {"_id": "country", "totalAge": {"$sum": "age"}, "count": {"$count": 1}}},
    ]

compiles to::

    SELECT json_extract(document, '$.country') AS groupKey,
           SUM(COALESCE(json_extract(document, '$.age'), 0)) AS "totalAge",
           COUNT(*) AS "count"
    FROM "people" WHERE json_extract(document, '$.age') > ?
    GROUP BY json_extract(document, '$.country')

Every `$match` stage is AND-combined and applied before grouping, wherever it
appears in the pipeline. A later `$group` replaces an earlier one.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Union

from docstore.errors import (
    InvalidIdentifierError,
    MissingGroupKeyError,
    UnsupportedAggregationOperatorError,
    UnsupportedPipelineStageError,
)
from docstore.identifiers import json_extract, quote, validate_field_path, validate_identifier
from docstore.predicates import MATCH_OPERATORS, Clause, compile_clauses, parse_query

GROUP_KEY = "groupKey"

ACCUMULATORS: dict[str, str] = {
    "$sum": "SUM",
    "$avg": "AVG",
    "$count": "COUNT",
    "$min": "MIN",
    "$max": "MAX",
}


@dataclass(frozen=True)
class Accumulator:
    """One named aggregate inside a `$group` stage."""

    alias: str
    op: str  # one of ACCUMULATORS
    field_path: str | None = None  # None for $count

    def to_sql(self) -> str:
        func = ACCUMULATORS[self.op]
        if self.op == "$count":
            return f"{func}(*) AS {quote(self.alias)}"
        # Missing or null values count as 0 rather than being skipped.
        assert self.field_path is not None
        return f"{func}(COALESCE({json_extract(self.field_path)}, 0)) AS {quote(self.alias)}"


@dataclass(frozen=True)
class MatchStage:
    clauses: tuple[Clause, ...]


@dataclass(frozen=True)
class GroupStage:
    group_field: str
    accumulators: tuple[Accumulator, ...] = ()


Stage = Union[MatchStage, GroupStage]


@dataclass
class CompiledPipeline:
    sql: str
    params: list[Any] = field(default_factory=list)
    group: GroupStage | None = None

    @property
    def output_fields(self) -> list[str]:
        if self.group is None:
            return []
        return [GROUP_KEY] + [a.alias for a in self.group.accumulators]


def _strip_field_ref(ref: Any) -> Any:
    # "$country" and "country" name the same field.
    if isinstance(ref, str) and ref.startswith("$"):
        return ref[1:]
    return ref


def parse_accumulator(alias: str, spec: Any) -> Accumulator:
    validate_identifier(alias, kind="output field")
    if alias == GROUP_KEY:
        raise InvalidIdentifierError(
            alias, kind="output field", detail=f"'{GROUP_KEY}' is reserved for the group key"
        )
    if not isinstance(spec, Mapping) or len(spec) != 1:
        raise UnsupportedAggregationOperatorError(alias, repr(spec))
    op, operand = next(iter(spec.items()))
    if op not in ACCUMULATORS:
        raise UnsupportedAggregationOperatorError(alias, str(op))
    if op == "$count":
        return Accumulator(alias, op)
    return Accumulator(alias, op, validate_field_path(_strip_field_ref(operand)))


def parse_group(spec: Any) -> GroupStage:
    if not isinstance(spec, Mapping):
        raise UnsupportedPipelineStageError(f"$group expects a mapping, got {type(spec).__name__}")
    group_id = spec.get("_id")
    if group_id is None or group_id == "":
        raise MissingGroupKeyError()
    group_field = validate_field_path(_strip_field_ref(group_id))
    accumulators = tuple(
        parse_accumulator(alias, acc) for alias, acc in spec.items() if alias != "_id"
    )
    return GroupStage(group_field, accumulators)


def parse_stage(stage: Any) -> Stage:
    if not isinstance(stage, Mapping) or len(stage) != 1:
        raise UnsupportedPipelineStageError(repr(stage))
    kind, spec = next(iter(stage.items()))
    if kind == "$match":
        return MatchStage(tuple(parse_query(spec, allowed=MATCH_OPERATORS)))
    if kind == "$group":
        return parse_group(spec)
    raise UnsupportedPipelineStageError(str(kind))


def parse_pipeline(pipeline: Sequence[Any]) -> list[Stage]:
    if isinstance(pipeline, (str, bytes, Mapping)) or not isinstance(pipeline, Sequence):
        raise UnsupportedPipelineStageError(f"pipeline must be a list of stages: {pipeline!r}")
    return [parse_stage(s) for s in pipeline]


def compile_pipeline(collection: str, stages: list[Stage]) -> CompiledPipeline:
    """Fold parsed stages into one SELECT against `collection` (already validated)."""
    clauses: list[Clause] = []
    group: GroupStage | None = None
    for stage in stages:
        if isinstance(stage, MatchStage):
            clauses.extend(stage.clauses)
        elif isinstance(stage, GroupStage):
            group = stage
        else:
            raise ValueError(f"Unknown pipeline stage type: {type(stage)}")

    predicate = compile_clauses(clauses)
    table = quote(collection)

    if group is None:
        sql = f"SELECT _id, document FROM {table}{predicate.where_clause}"
        return CompiledPipeline(sql, predicate.params)

    group_expr = json_extract(group.group_field)
    select_parts = [f"{group_expr} AS {GROUP_KEY}"]
    select_parts.extend(a.to_sql() for a in group.accumulators)
    sql = (
        f"SELECT {', '.join(select_parts)} FROM {table}{predicate.where_clause} "
        f"GROUP BY {group_expr}"
    )
    return CompiledPipeline(sql, predicate.params, group)
