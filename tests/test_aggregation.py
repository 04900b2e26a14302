"""Tests for aggregation pipelines: parsing, compilation and execution."""

from __future__ import annotations

import pytest

from docstore.aggregation import (
    Accumulator,
    GroupStage,
    MatchStage,
    compile_pipeline,
    parse_pipeline,
)
from docstore.errors import (
    InvalidIdentifierError,
    MissingGroupKeyError,
    UnsupportedAggregationOperatorError,
    UnsupportedOperatorError,
    UnsupportedPipelineStageError,
)
from docstore.predicates import Compare, Equals

SCENARIO = [
    {"$match": {"age": {"$gt": 15}}},
    {"$group": {"_id": "country", "totalAge": {"$sum": "age"}, "count": {"$count": 1}}},
]


def _by_key(rows):
    return {r["groupKey"]: r for r in rows}


class TestParsePipeline:
    def test_match_and_group(self):
        stages = parse_pipeline(SCENARIO)
        assert stages == [
            MatchStage((Compare("age", "$gt", 15),)),
            GroupStage(
                "country",
                (Accumulator("totalAge", "$sum", "age"), Accumulator("count", "$count")),
            ),
        ]

    def test_dollar_prefixed_field_refs(self):
        (stage,) = parse_pipeline([{"$group": {"_id": "$country", "avg": {"$avg": "$age"}}}])
        assert stage == GroupStage("country", (Accumulator("avg", "$avg", "age"),))

    def test_unsupported_stage(self):
        with pytest.raises(UnsupportedPipelineStageError) as exc_info:
            parse_pipeline([{"$sort": {"age": 1}}])
        assert exc_info.value.stage == "$sort"

    def test_stage_with_two_keys(self):
        with pytest.raises(UnsupportedPipelineStageError):
            parse_pipeline([{"$match": {}, "$group": {"_id": "a"}}])

    def test_group_without_id(self):
        with pytest.raises(MissingGroupKeyError):
            parse_pipeline([{"$group": {"total": {"$sum": "age"}}}])

    def test_unknown_accumulator(self):
        with pytest.raises(UnsupportedAggregationOperatorError) as exc_info:
            parse_pipeline([{"$group": {"_id": "country", "ages": {"$push": "age"}}}])
        assert exc_info.value.operator == "$push"

    def test_accumulator_must_be_operator_object(self):
        with pytest.raises(UnsupportedAggregationOperatorError):
            parse_pipeline([{"$group": {"_id": "country", "total": "age"}}])

    def test_alias_must_be_identifier(self):
        with pytest.raises(InvalidIdentifierError):
            parse_pipeline([{"$group": {"_id": "country", 'x" FROM t; --': {"$count": 1}}}])

    def test_alias_cannot_shadow_group_key(self):
        with pytest.raises(InvalidIdentifierError, match="reserved"):
            parse_pipeline([{"$group": {"_id": "country", "groupKey": {"$count": 1}}}])

    def test_match_only_accepts_comparisons(self):
        with pytest.raises(UnsupportedOperatorError):
            parse_pipeline([{"$match": {"country": {"$in": ["USA"]}}}])

    def test_pipeline_must_be_a_list(self):
        with pytest.raises(UnsupportedPipelineStageError):
            parse_pipeline({"$match": {}})  # type: ignore[arg-type]


class TestCompilePipeline:
    def test_group_statement(self):
        compiled = compile_pipeline("people", parse_pipeline(SCENARIO))
        assert compiled.sql == (
            "SELECT json_extract(document, '$.country') AS groupKey, "
            "SUM(COALESCE(json_extract(document, '$.age'), 0)) AS \"totalAge\", "
            'COUNT(*) AS "count" '
            "FROM \"people\" WHERE json_extract(document, '$.age') > ? "
            "GROUP BY json_extract(document, '$.country')"
        )
        assert compiled.params == [15]
        assert compiled.output_fields == ["groupKey", "totalAge", "count"]

    def test_multiple_matches_are_conjoined(self):
        stages = parse_pipeline([{"$match": {"age": {"$gt": 15}}}, {"$match": {"country": "USA"}}])
        compiled = compile_pipeline("people", stages)
        assert compiled.sql == (
            'SELECT _id, document FROM "people" WHERE '
            "json_extract(document, '$.age') > ? AND json_extract(document, '$.country') = ?"
        )
        assert compiled.params == [15, "USA"]

    def test_match_after_group_still_filters_rows(self):
        stages = parse_pipeline(
            [{"$group": {"_id": "country", "n": {"$count": 1}}}, {"$match": {"age": 25}}]
        )
        compiled = compile_pipeline("people", stages)
        assert "WHERE json_extract(document, '$.age') = ?" in compiled.sql
        assert compiled.sql.endswith("GROUP BY json_extract(document, '$.country')")

    def test_later_group_supersedes(self):
        stages = parse_pipeline(
            [
                {"$group": {"_id": "country", "n": {"$count": 1}}},
                {"$group": {"_id": "age", "m": {"$max": "age"}}},
            ]
        )
        compiled = compile_pipeline("people", stages)
        assert compiled.output_fields == ["groupKey", "m"]
        assert "GROUP BY json_extract(document, '$.age')" in compiled.sql

    def test_empty_pipeline(self):
        compiled = compile_pipeline("people", [])
        assert compiled.sql == 'SELECT _id, document FROM "people"'
        assert compiled.group is None


class TestAggregateExecution:
    def test_match_then_group(self, people):
        rows = people.aggregate("people", SCENARIO)
        assert len(rows) == 2
        assert _by_key(rows) == {
            "USA": {"groupKey": "USA", "totalAge": 100, "count": 2},
            "MEX": {"groupKey": "MEX", "totalAge": 50, "count": 2},
        }

    def test_multiple_match_stages_equal_merged_match(self, people):
        split = people.aggregate(
            "people",
            [
                {"$match": {"age": {"$gt": 15}}},
                {"$match": {"country": "USA"}},
                {"$group": {"_id": "country", "n": {"$count": 1}}},
            ],
        )
        merged = people.aggregate(
            "people",
            [
                {"$match": {"age": {"$gt": 15}, "country": "USA"}},
                {"$group": {"_id": "country", "n": {"$count": 1}}},
            ],
        )
        assert split == merged == [{"groupKey": "USA", "n": 2}]

    def test_avg_min_max(self, people):
        rows = people.aggregate(
            "people",
            [
                {
                    "$group": {
                        "_id": "country",
                        "avgAge": {"$avg": "age"},
                        "youngest": {"$min": "age"},
                        "oldest": {"$max": "age"},
                    }
                }
            ],
        )
        by_key = _by_key(rows)
        assert by_key["USA"]["avgAge"] == pytest.approx(115 / 3)
        assert by_key["USA"]["youngest"] == 15
        assert by_key["USA"]["oldest"] == 55
        assert by_key["MEX"]["avgAge"] == pytest.approx(65 / 3)

    def test_missing_values_count_as_zero(self, store):
        store.create_collection("scores")
        store.insert_many(
            "scores",
            [
                {"team": "a", "points": 10},
                {"team": "a"},
                {"team": "a", "points": None},
            ],
        )
        rows = store.aggregate(
            "scores",
            [
                {
                    "$group": {
                        "_id": "team",
                        "total": {"$sum": "points"},
                        "mean": {"$avg": "points"},
                        "low": {"$min": "points"},
                    }
                }
            ],
        )
        assert rows == [{"groupKey": "a", "total": 10, "mean": pytest.approx(10 / 3), "low": 0}]

    def test_match_only_returns_documents(self, people):
        docs = people.aggregate("people", [{"$match": {"country": "MEX", "age": 25}}])
        assert len(docs) == 2
        assert all(d["country"] == "MEX" and "_id" in d for d in docs)

    def test_missing_collection_soft_fails(self, store):
        assert store.aggregate("ghosts", SCENARIO) == []

    def test_malformed_pipeline_fails_even_without_collection(self, store):
        with pytest.raises(UnsupportedPipelineStageError):
            store.aggregate("ghosts", [{"$lookup": {}}])
