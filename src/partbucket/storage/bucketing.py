"""
Bucketing for Arrow data.

Computes bucket indices for pyarrow arrays and tables so bucketed data can be
written out one partition per bucket:

    >>> schema = Struct([NestedField(1, "id", Int()), NestedField(2, "name", String())])
    >>> table = pa.table({"id": [34, 35, None], "name": ["a", "b", "c"]})
    >>> table = add_bucket_column(table, get_bucket(16), "id", schema)
    >>> table.column_names
    ['id', 'name', 'id_bucket']
    >>> parts = split_by_bucket(table, "id_bucket")

Values are converted with to_pylist() before hashing, so hashing sees the
same Python values the rest of partbucket works with: int for int32/int64,
float for float32/float64 (a float32 array yields exactly representable
values), Decimal for decimal128, bytes for binary and fixed_size_binary(16).
Null slots stay null in the bucket column.
"""

import logging
from typing import Dict, Optional, Sequence, Union

import pyarrow as pa
import pyarrow.compute as pc

from ..analysis.filters import bucket_field_name
from ..schema.record import Record
from ..schema.types import Struct
from ..transforms.bucket import BoundBucket, BucketBase

logger = logging.getLogger(__name__)

__all__ = [
    "bucket_array",
    "add_bucket_column",
    "split_by_bucket",
]

ArrayLike = Union[pa.Array, pa.ChunkedArray]


def bucket_array(bucket: BoundBucket, array: ArrayLike) -> pa.Array:
    """
    Bucket every value of *array*.

    Args:
        bucket: Bound bucket transform for the array's type
        array: Array or chunked array of source values (struct arrays for a
            multi-column bucket)

    Returns:
        int32 array of bucket indices, null where the source is null
    """
    values = array.to_pylist()
    if isinstance(bucket.source_type, Struct):
        values = [
            None if v is None else Record.from_document(bucket.source_type, v)
            for v in values
        ]
    return pa.array([bucket.apply(v) for v in values], type=pa.int32())


def add_bucket_column(
    table: pa.Table,
    transform: BucketBase,
    source: Union[str, Sequence[str]],
    schema: Struct,
    column_name: Optional[str] = None,
) -> pa.Table:
    """
    Append a bucket column computed from one or more source columns.

    Args:
        table: Source table
        transform: Bucket transform (MultiColumnBucket for several columns)
        source: Column name, or sequence of column names
        schema: Struct describing the table's columns (field ids and types)
        column_name: Name of the new column (default: bucket_field_name(source))

    Returns:
        New table with the bucket column appended

    Raises:
        ValueError: If a source column is missing from the table or schema
    """
    names = [source] if isinstance(source, str) else list(source)
    missing = [n for n in names if n not in table.column_names]
    if missing:
        raise ValueError(
            f"Columns {missing} not found in table. "
            f"Available columns: {table.column_names}"
        )

    column_name = column_name or bucket_field_name(source)

    if isinstance(source, str):
        field = schema.field(source)
        if field is None:
            raise ValueError(f"Column '{source}' not found in schema {schema}")
        bucket = transform.bind(field.field_type)
        buckets = bucket_array(bucket, table.column(source))
    else:
        struct_type = schema.select(names)
        bucket = transform.bind(struct_type)
        rows = table.select(names).to_pylist()
        buckets = pa.array(
            [bucket.apply(Record.from_document(struct_type, row)) for row in rows],
            type=pa.int32(),
        )

    logger.debug(f"Computed {column_name} with {bucket} for {table.num_rows} rows")
    return table.append_column(column_name, buckets)


def split_by_bucket(table: pa.Table, column: str) -> Dict[Optional[int], pa.Table]:
    """
    Split *table* into one table per distinct value of bucket *column*.

    Rows whose bucket is null are grouped under the None key.
    """
    bucket_column = table.column(column)
    parts: Dict[Optional[int], pa.Table] = {}

    for value in pc.unique(bucket_column).to_pylist():
        if value is None:
            mask = pc.is_null(bucket_column)
        else:
            mask = pc.equal(bucket_column, value)
        parts[value] = table.filter(mask)

    return parts
