"""
partbucket: deterministic value hashing and bucket partition transforms.

    >>> from partbucket import Int, get_bucket
    >>> get_bucket(16).bind(Int(bits=32)).apply(34)
    3
"""

from .analysis import parse_filter, project_filter
from .constants import HASH_ALGORITHM, HASH_FORMAT_VERSION
from .expressions import Operation, UnboundPredicate
from .hashing import ValueKind, hash_struct, hash_value
from .schema import (
    Binary,
    Bool,
    Decimal,
    Float,
    Int,
    List,
    Map,
    NestedField,
    Record,
    String,
    Struct,
    Types,
    Uuid,
)
from .storage import add_bucket_column, bucket_array, split_by_bucket
from .transforms import (
    BoundBucket,
    BucketTransform,
    MultiColumnBucket,
    get_bucket,
    get_multi_column_bucket,
)

__version__ = "0.1.0"

__all__ = [
    "HASH_ALGORITHM",
    "HASH_FORMAT_VERSION",
    # schema
    "Types",
    "Int",
    "Float",
    "String",
    "Bool",
    "Binary",
    "Uuid",
    "Decimal",
    "NestedField",
    "Struct",
    "List",
    "Map",
    "Record",
    # hashing
    "ValueKind",
    "hash_value",
    "hash_struct",
    # transforms
    "BucketTransform",
    "MultiColumnBucket",
    "BoundBucket",
    "get_bucket",
    "get_multi_column_bucket",
    # expressions / analysis
    "Operation",
    "UnboundPredicate",
    "parse_filter",
    "project_filter",
    # storage
    "bucket_array",
    "add_bucket_column",
    "split_by_bucket",
]
