"""
Tests for partbucket.analysis.filters module.

Covers:
- parse_filter(): MongoDB operators to predicates, opaque clauses
- project_filter(): single-column inclusive and strict rewrites
- project_filter(): literals the column cannot hold
- project_filter(): multi-column rewrites and the combination cap
"""

import logging
import math
import re
from decimal import Decimal

import pytest

from partbucket.analysis.filters import (
    OpaqueClause,
    bucket_field_name,
    parse_filter,
    project_filter,
)
from partbucket.constants import MAX_PROJECTED_COMBINATIONS
from partbucket.expressions.predicates import Operation, UnboundPredicate
from partbucket.schema.record import Record
from partbucket.schema.types import (
    Decimal as DecimalType,
    Float,
    Int,
    NestedField,
    String,
    Struct,
)
from partbucket.transforms.bucket import get_bucket, get_multi_column_bucket


@pytest.fixture
def schema():
    return Struct(
        [
            NestedField(1, "id", Int(bits=32)),
            NestedField(2, "region", String()),
            NestedField(3, "value", Float()),
        ]
    )


def bucket(num_buckets, type_, value):
    return get_bucket(num_buckets).bind(type_).apply(value)


class TestParseFilter:
    """MongoDB filter to conjunction of predicates."""

    def test_implicit_eq(self):
        assert parse_filter({"id": 5}) == [UnboundPredicate(Operation.EQ, "id", (5,))]

    def test_operator_document(self):
        result = parse_filter({"ts": {"$gte": 1, "$lt": 9}})

        assert result == [
            UnboundPredicate(Operation.GT_EQ, "ts", (1,)),
            UnboundPredicate(Operation.LT, "ts", (9,)),
        ]

    @pytest.mark.parametrize(
        "operator,op",
        [
            ("$eq", Operation.EQ),
            ("$ne", Operation.NOT_EQ),
            ("$gt", Operation.GT),
            ("$gte", Operation.GT_EQ),
            ("$lt", Operation.LT),
            ("$lte", Operation.LT_EQ),
        ],
    )
    def test_comparison_operators(self, operator, op):
        assert parse_filter({"x": {operator: 3}}) == [UnboundPredicate(op, "x", (3,))]

    def test_set_operators(self):
        result = parse_filter({"x": {"$in": [1, 2]}, "y": {"$nin": [3]}})

        assert result == [
            UnboundPredicate(Operation.IN, "x", (1, 2)),
            UnboundPredicate(Operation.NOT_IN, "y", (3,)),
        ]

    def test_null_and_nan(self):
        assert [str(p) for p in parse_filter({"a": None, "b": {"$ne": None}})] == [
            "is_null(a)",
            "not_null(b)",
        ]
        assert [p.op for p in parse_filter({"a": math.nan, "b": {"$ne": math.nan}})] == [
            Operation.IS_NAN,
            Operation.NOT_NAN,
        ]

    def test_and_is_flattened(self):
        result = parse_filter({"$and": [{"a": 1}, {"$and": [{"b": 2}]}], "c": 3})

        assert [p.term for p in result] == ["a", "b", "c"]

    def test_embedded_document_is_equality(self):
        result = parse_filter({"key": {"id": 1, "region": "eu"}})

        assert result == [UnboundPredicate(Operation.EQ, "key", ({"id": 1, "region": "eu"},))]

    @pytest.mark.parametrize(
        "filter_dict",
        [
            {"a": {"$in": 1}},
            {"a": {"$gt": 1, "b": 2}},
            {"$and": {"a": 1}},
        ],
    )
    def test_malformed_filters_raise(self, filter_dict):
        with pytest.raises(ValueError):
            parse_filter(filter_dict)

    @pytest.mark.parametrize(
        "filter_dict,term",
        [
            ({"$or": [{"a": 1}, {"b": 2}]}, None),
            ({"$nor": [{"a": 1}]}, None),
            ({"a": {"$regex": "^x"}}, "a"),
            ({"a": re.compile("^x")}, "a"),
            ({"a": {"$exists": True}}, "a"),
            ({"a": {"$in": [1, None]}}, "a"),
            ({"a": {"$in": [re.compile("^x")]}}, "a"),
            ({"a": {"$gt": None}}, "a"),
        ],
    )
    def test_other_clauses_are_opaque(self, filter_dict, term):
        result = parse_filter(filter_dict)

        assert result == [OpaqueClause(term, filter_dict)]

    def test_opaque_clause_keeps_its_neighbours(self):
        result = parse_filter({"id": 34, "$or": [{"a": 1}], "name": {"$regex": "^a"}})

        assert result[0] == UnboundPredicate(Operation.EQ, "id", (34,))
        assert [type(p) for p in result[1:]] == [OpaqueClause, OpaqueClause]

    def test_empty_filter(self):
        assert parse_filter({}) == []


class TestBucketFieldName:
    def test_single(self):
        assert bucket_field_name("id") == "id_bucket"

    def test_multiple(self):
        assert bucket_field_name(["id", "region"]) == "id_region_bucket"


class TestProjectInclusive:
    """Single-column inclusive rewrites."""

    def test_eq(self, schema):
        assert project_filter({"id": 34}, schema, get_bucket(16), "id") == {
            "id_bucket": {"$eq": 3}
        }

    def test_in(self, schema):
        result = project_filter({"id": {"$in": [34, 35]}}, schema, get_bucket(16), "id")

        expected = sorted({bucket(16, Int(bits=32), 34), bucket(16, Int(bits=32), 35)})
        assert result == {"id_bucket": {"$in": expected}}

    def test_other_columns_are_dropped(self, schema):
        result = project_filter(
            {"id": 34, "region": "eu", "value": {"$gt": 1.0}},
            schema,
            get_bucket(16),
            "id",
        )

        assert result == {"id_bucket": {"$eq": 3}}

    def test_unprojectable_conjuncts_are_dropped(self, schema):
        result = project_filter(
            {"id": {"$gt": 10, "$in": [34]}}, schema, get_bucket(16), "id"
        )

        assert result == {"id_bucket": {"$in": [3]}}

    def test_several_projections_are_anded(self, schema):
        result = project_filter(
            {"$and": [{"id": 34}, {"id": {"$ne": None}}]}, schema, get_bucket(16), "id"
        )

        assert result == {
            "$and": [{"id_bucket": {"$eq": 3}}, {"id_bucket": {"$ne": None}}]
        }

    def test_null(self, schema):
        assert project_filter({"id": None}, schema, get_bucket(16), "id") == {
            "id_bucket": None
        }

    def test_custom_bucket_field(self, schema):
        result = project_filter({"id": 34}, schema, get_bucket(16), "id", bucket_field="b")

        assert result == {"b": {"$eq": 3}}

    def test_nothing_projectable_returns_none(self, schema):
        assert project_filter({"id": {"$gt": 3}}, schema, get_bucket(16), "id") is None
        assert project_filter({"region": "eu"}, schema, get_bucket(16), "id") is None
        assert project_filter({}, schema, get_bucket(16), "id") is None

    def test_literal_of_wrong_type_is_dropped(self, schema):
        assert project_filter({"id": "34"}, schema, get_bucket(16), "id") is None

    def test_opaque_clauses_are_dropped(self, schema):
        for filter_dict in (
            {"id": 34, "region": {"$regex": "^a"}},
            {"id": 34, "$or": [{"region": "eu"}, {"value": 1.0}]},
            {"id": 34, "region": {"$exists": True}},
        ):
            result = project_filter(filter_dict, schema, get_bucket(16), "id")

            assert result == {"id_bucket": {"$eq": 3}}

    def test_fractional_comparison_on_int_column(self, schema):
        assert project_filter({"id": {"$gt": 2.5}}, schema, get_bucket(16), "id") is None

    def test_integral_float_matches_int_column(self, schema):
        result = project_filter({"id": {"$in": [34.0, 35]}}, schema, get_bucket(16), "id")

        expected = sorted({bucket(16, Int(bits=32), 34), bucket(16, Int(bits=32), 35)})
        assert result == {"id_bucket": {"$in": expected}}

    def test_out_of_range_set_literal_is_removed(self, schema):
        result = project_filter(
            {"id": {"$in": [34, 2**40]}}, schema, get_bucket(16), "id"
        )

        assert result == {"id_bucket": {"$in": [3]}}

    def test_set_without_usable_literals_is_dropped(self, schema):
        result = project_filter(
            {"id": {"$in": [2**40, "x"]}}, schema, get_bucket(16), "id"
        )

        assert result is None

    def test_decimal_literal_with_extra_digits_is_removed(self):
        schema = Struct([NestedField(1, "price", DecimalType(9, 2))])

        result = project_filter(
            {"price": {"$in": [Decimal("14.205"), Decimal("1.00")]}},
            schema,
            get_bucket(10),
            "price",
        )

        expected = bucket(10, DecimalType(9, 2), Decimal("1.00"))
        assert result == {"price_bucket": {"$in": [expected]}}

    def test_float32_literal_out_of_range(self):
        schema = Struct([NestedField(1, "f", Float(bits=32))])
        transform = get_bucket(8)

        assert project_filter({"f": {"$gt": 1e39}}, schema, transform, "f") is None
        assert project_filter({"f": 1e39}, schema, transform, "f") is None
        assert project_filter({"f": {"$in": [1e39, 1.5]}}, schema, transform, "f") == {
            "f_bucket": {"$in": [bucket(8, Float(bits=32), 1.5)]}
        }

    def test_missing_column_raises(self, schema):
        with pytest.raises(ValueError, match="Cannot find field"):
            project_filter({"missing": 1}, schema, get_bucket(16), "missing")


class TestProjectStrict:
    """Single-column strict rewrites."""

    def test_ne(self, schema):
        result = project_filter({"id": {"$ne": 34}}, schema, get_bucket(16), "id", strict=True)

        assert result == {"id_bucket": {"$ne": 3}}

    def test_nin(self, schema):
        result = project_filter(
            {"region": {"$nin": ["iceberg"]}}, schema, get_bucket(10), "region", strict=True
        )

        assert result == {"region_bucket": {"$nin": [9]}}

    def test_eq_has_no_strict_projection(self, schema):
        assert project_filter({"id": 34}, schema, get_bucket(16), "id", strict=True) is None

    def test_other_column_blocks_strict_projection(self, schema):
        result = project_filter(
            {"id": {"$ne": 34}, "region": "eu"}, schema, get_bucket(16), "id", strict=True
        )

        assert result is None

    def test_unprojectable_conjunct_blocks_strict_projection(self, schema):
        result = project_filter(
            {"id": {"$ne": 34, "$gt": 1}}, schema, get_bucket(16), "id", strict=True
        )

        assert result is None

    def test_opaque_clause_blocks_strict_projection(self, schema):
        result = project_filter(
            {"id": {"$ne": 34}, "$or": [{"id": 1}]}, schema, get_bucket(16), "id", strict=True
        )

        assert result is None

    def test_impossible_nin_literal_is_removed(self, schema):
        result = project_filter(
            {"id": {"$nin": [34, "x", 2**40]}}, schema, get_bucket(16), "id", strict=True
        )

        assert result == {"id_bucket": {"$nin": [3]}}

    def test_impossible_ne_literal_gives_none(self, schema):
        result = project_filter(
            {"id": {"$ne": 2**40}}, schema, get_bucket(16), "id", strict=True
        )

        assert result is None


class TestProjectMultiColumn:
    """Rewrites through a multi-column bucket."""

    @pytest.fixture
    def key_type(self, schema):
        return schema.select(["id", "region"])

    def _bucket_of(self, key_type, num_buckets, **values):
        bound = get_multi_column_bucket(num_buckets).bind(key_type)
        return bound.apply(Record(key_type, values))

    def test_eq_on_every_column(self, schema, key_type):
        result = project_filter(
            {"id": 7, "region": "eu"}, schema, get_multi_column_bucket(8), ["id", "region"]
        )

        expected = self._bucket_of(key_type, 8, id=7, region="eu")
        assert result == {"id_region_bucket": {"$in": [expected]}}

    def test_cartesian_product(self, schema, key_type):
        result = project_filter(
            {"id": {"$in": [7, 9]}, "region": {"$in": ["eu", "us"]}},
            schema,
            get_multi_column_bucket(1000),
            ["id", "region"],
        )

        expected = sorted(
            {
                self._bucket_of(key_type, 1000, id=i, region=r)
                for i in (7, 9)
                for r in ("eu", "us")
            }
        )
        assert result == {"id_region_bucket": {"$in": expected}}

    def test_null_column(self, schema, key_type):
        result = project_filter(
            {"id": 7, "region": None}, schema, get_multi_column_bucket(8), ["id", "region"]
        )

        expected = self._bucket_of(key_type, 8, id=7, region=None)
        assert result == {"id_region_bucket": {"$in": [expected]}}

    def test_repeated_constraints_intersect(self, schema, key_type):
        result = project_filter(
            {"$and": [{"id": {"$in": [7, 9]}}, {"id": {"$in": [9, 11]}}], "region": "eu"},
            schema,
            get_multi_column_bucket(8),
            ["id", "region"],
        )

        expected = self._bucket_of(key_type, 8, id=9, region="eu")
        assert result == {"id_region_bucket": {"$in": [expected]}}

    def test_unpinned_column_returns_none(self, schema):
        result = project_filter(
            {"id": 7, "region": {"$ne": "eu"}},
            schema,
            get_multi_column_bucket(8),
            ["id", "region"],
        )

        assert result is None

    def test_combination_cap(self, schema, caplog):
        ids = list(range(MAX_PROJECTED_COMBINATIONS))
        filter_dict = {"id": {"$in": ids}, "region": {"$in": ["eu", "us"]}}

        with caplog.at_level(logging.WARNING, logger="partbucket.analysis.filters"):
            result = project_filter(
                filter_dict, schema, get_multi_column_bucket(8), ["id", "region"]
            )

        assert result is None
        assert "exceed the limit" in caplog.text

    def test_strict_returns_none(self, schema):
        result = project_filter(
            {"id": 7, "region": "eu"},
            schema,
            get_multi_column_bucket(8),
            ["id", "region"],
            strict=True,
        )

        assert result is None
