"""
Tests for partbucket.storage.bucketing module.

Covers:
- bucket_array(): per-type Arrow inputs and null slots
- add_bucket_column(): single and multi-column
- split_by_bucket(): partition tables
"""

import uuid
from decimal import Decimal

import pyarrow as pa
import pytest

from partbucket.schema.record import Record
from partbucket.schema.types import (
    Decimal as DecimalType,
    Float,
    Int,
    NestedField,
    String,
    Struct,
    Uuid,
)
from partbucket.storage.bucketing import add_bucket_column, bucket_array, split_by_bucket
from partbucket.transforms.bucket import get_bucket, get_multi_column_bucket


@pytest.fixture
def schema():
    return Struct(
        [
            NestedField(1, "id", Int(bits=32)),
            NestedField(2, "region", String()),
            NestedField(3, "price", DecimalType(9, 2)),
        ]
    )


@pytest.fixture
def table():
    return pa.table(
        {
            "id": pa.array([34, 35, None, 34], type=pa.int32()),
            "region": ["eu", "us", "eu", None],
            "price": pa.array(
                [Decimal("14.20"), Decimal("1.00"), None, Decimal("2.50")],
                type=pa.decimal128(9, 2),
            ),
        }
    )


class TestBucketArray:
    """Bucketing Arrow arrays."""

    def test_int32(self):
        bound = get_bucket(16).bind(Int(bits=32))

        result = bucket_array(bound, pa.array([34, None], type=pa.int32()))

        assert result.type == pa.int32()
        assert result.to_pylist() == [3, None]

    def test_chunked_array(self):
        bound = get_bucket(10).bind(String())
        chunked = pa.chunked_array([["iceberg"], [None, "iceberg"]])

        assert bucket_array(bound, chunked).to_pylist() == [9, None, 9]

    def test_decimal(self):
        bound = get_bucket(10).bind(DecimalType(9, 2))
        array = pa.array([Decimal("14.20")], type=pa.decimal128(9, 2))

        assert bucket_array(bound, array).to_pylist() == [9]

    def test_float32_matches_scalar_bucket(self):
        bound = get_bucket(97).bind(Float(bits=32))
        array = pa.array([0.1, -0.0], type=pa.float32())

        assert bucket_array(bound, array).to_pylist() == [bound.apply(0.1), bound.apply(0.0)]

    def test_uuid_fixed_size_binary(self):
        value = uuid.UUID("f79c3e09-677c-4bbd-a479-3f349cb785e7")
        bound = get_bucket(97).bind(Uuid())
        array = pa.array([value.bytes], type=pa.binary(16))

        assert bucket_array(bound, array).to_pylist() == [bound.apply(value)]

    def test_struct_array(self):
        key = Struct([NestedField(1, "id", Int()), NestedField(2, "region", String())])
        bound = get_multi_column_bucket(8).bind(key)
        array = pa.array(
            [{"id": 7, "region": "eu"}, None],
            type=pa.struct([("id", pa.int64()), ("region", pa.string())]),
        )

        expected = bound.apply(Record(key, {"id": 7, "region": "eu"}))
        assert bucket_array(bound, array).to_pylist() == [expected, None]


class TestAddBucketColumn:
    """Appending bucket columns to tables."""

    def test_single_column(self, table, schema):
        result = add_bucket_column(table, get_bucket(16), "id", schema)

        assert result.column_names == ["id", "region", "price", "id_bucket"]
        bucket_35 = get_bucket(16).bind(Int(bits=32)).apply(35)
        assert result.column("id_bucket").to_pylist() == [3, bucket_35, None, 3]

    def test_custom_column_name(self, table, schema):
        result = add_bucket_column(table, get_bucket(16), "id", schema, column_name="b")

        assert "b" in result.column_names

    def test_multi_column(self, table, schema):
        result = add_bucket_column(
            table, get_multi_column_bucket(8), ["id", "region"], schema
        )

        key = schema.select(["id", "region"])
        bound = get_multi_column_bucket(8).bind(key)
        expected = [
            bound.apply(Record(key, {"id": 34, "region": "eu"})),
            bound.apply(Record(key, {"id": 35, "region": "us"})),
            bound.apply(Record(key, {"id": None, "region": "eu"})),
            bound.apply(Record(key, {"id": 34, "region": None})),
        ]
        assert result.column("id_region_bucket").to_pylist() == expected

    def test_missing_column_raises(self, table, schema):
        with pytest.raises(ValueError, match="not found in table"):
            add_bucket_column(table, get_bucket(16), "missing", schema)

    def test_column_missing_from_schema_raises(self, schema):
        table = pa.table({"other": [1, 2]})

        with pytest.raises(ValueError, match="not found in schema"):
            add_bucket_column(table, get_bucket(16), "other", schema)

    def test_unsupported_source_type_raises(self, table):
        schema = Struct([NestedField(1, "id", Int()), NestedField(2, "region", String())])

        with pytest.raises(ValueError, match="Cannot bucket by type"):
            add_bucket_column(table, get_multi_column_bucket(4), "id", schema)


class TestSplitByBucket:
    """Partitioning a table by its bucket column."""

    def test_split(self, table, schema):
        bucketed = add_bucket_column(table, get_bucket(16), "id", schema)

        parts = split_by_bucket(bucketed, "id_bucket")

        assert sum(part.num_rows for part in parts.values()) == table.num_rows
        assert parts[3].column("id").to_pylist().count(34) == 2
        assert parts[None].column("id").to_pylist() == [None]
        for key, part in parts.items():
            assert set(part.column("id_bucket").to_pylist()) == {key}
