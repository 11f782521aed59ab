"""
Partition transforms.

- bucket: scalar and multi-column bucket transforms with predicate projection
- projection: helpers shared by projections
"""

from .bucket import (
    BoundBucket,
    BucketBase,
    BucketTransform,
    MultiColumnBucket,
    get_bucket,
    get_multi_column_bucket,
)
from .projection import project_transform_predicate, transform_set

__all__ = [
    "BucketBase",
    "BucketTransform",
    "MultiColumnBucket",
    "BoundBucket",
    "get_bucket",
    "get_multi_column_bucket",
    "project_transform_predicate",
    "transform_set",
]
