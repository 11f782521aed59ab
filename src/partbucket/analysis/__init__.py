"""
Filter analysis for bucket pruning.

Parses MongoDB-style filters into predicates and projects them onto bucket
columns.
"""

from .filters import OpaqueClause, bucket_field_name, parse_filter, project_filter

__all__ = [
    "OpaqueClause",
    "parse_filter",
    "project_filter",
    "bucket_field_name",
]
