"""
Arrow storage helpers for partbucket.

- Bucketing: bucket indices for pyarrow arrays and tables, per-bucket splits
"""

from .bucketing import add_bucket_column, bucket_array, split_by_bucket

__all__ = [
    "bucket_array",
    "add_bucket_column",
    "split_by_bucket",
]
