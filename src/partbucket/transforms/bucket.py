"""
Bucket partition transforms.

================================================================================
BUCKETING
================================================================================

A bucket transform maps a value to an integer in [0, num_buckets):

    bucket(v) = (hash(v) & 0x7FFFFFFF) % num_buckets
    bucket(None) = None

Two variants exist, selected by the source column's type:

    BucketTransform     one scalar column (int, long, float, double, string,
                        binary, uuid, decimal), hashed with the canonical rule
                        for that type
    MultiColumnBucket   a flat struct of several columns, hashed with the
                        struct combinator

A transform is only a parameter (num_buckets). bind(type) resolves it once to
a BoundBucket carrying the ValueKind to hash with, so no per-value type
inspection happens when bucketing:

    >>> bucket = get_bucket(16).bind(Int(bits=32))
    >>> bucket.apply(34)
    3
    >>> bucket.apply(None) is None
    True

================================================================================
PROJECTION
================================================================================

Bucketing keeps equality but discards order, so only a few predicate shapes
survive the trip to the bucket column:

    predicate on source     project (inclusive)     project_strict
    ----------------------  ----------------------  ----------------------
    is_null / not_null      same, on bucket column  same, on bucket column
    eq v                    eq bucket(v)            None
    not_eq v                None                    not_eq bucket(v)
    in {v...}               in {bucket(v)...}       None
    not_in {v...}           None                    not_in {bucket(v)...}
    lt/lt_eq/gt/gt_eq       None                    None
    is_nan / not_nan        None                    None

Inclusive results match a superset of the source rows (used to keep a
partition); strict results match a subset (used to accept a whole partition
without reading it). None means "cannot prune with this predicate".

Why not_eq is strict-only: if bucket(x) != bucket(v) then x != v for sure,
but x != v says nothing about the buckets, which may still collide.
"""

import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Mapping, Optional

from ..constants import INT32_MASK
from ..expressions.predicates import (
    BoundPredicate,
    BoundTransform,
    Operation,
    UnboundPredicate,
)
from ..hashing.canonical import (
    SCALAR_KINDS,
    ValueKind,
    hash_decimal,
    hash_value,
    kind_for_type,
    rescale_decimal,
)
from ..hashing.struct import hash_struct
from ..schema.record import Record
from ..schema.types import BaseType, Int
from .projection import project_transform_predicate, transform_set

logger = logging.getLogger(__name__)

__all__ = [
    "BucketBase",
    "BucketTransform",
    "MultiColumnBucket",
    "BoundBucket",
    "get_bucket",
    "get_multi_column_bucket",
]


# =============================================================================
# TRANSFORMS
# =============================================================================


@dataclass(frozen=True, repr=False)
class BucketBase:
    """
    Bucket transform parametrized by the number of buckets.

    Transforms of the same variant are equal iff num_buckets matches.
    """

    num_buckets: int

    def __post_init__(self):
        n = self.num_buckets
        if isinstance(n, bool) or not isinstance(n, int) or n <= 0:
            raise ValueError(f"Invalid number of buckets: {n!r} (must be > 0)")

    def can_transform(self, type_: BaseType) -> bool:
        raise NotImplementedError

    def bind(self, type_: BaseType) -> "BoundBucket":
        """
        Resolve this transform for a source column type.

        Raises:
            ValueError: If can_transform(type_) is false
        """
        if not self.can_transform(type_):
            raise ValueError(f"Cannot bucket by type: {type_}")

        kind = kind_for_type(type_)
        logger.debug(f"Bound {self} to {type_} ({kind.value})")
        return BoundBucket(self, kind, type_)

    def result_type(self, source_type: BaseType) -> BaseType:
        return Int(bits=32)

    # -------------------------------------------------------------------------
    # Projection
    # -------------------------------------------------------------------------

    def _project_unary(self, name: str, pred: BoundPredicate) -> Optional[UnboundPredicate]:
        # Bucketing keeps null-ness; bucket indices are never NaN
        if pred.op in (Operation.IS_NULL, Operation.NOT_NULL):
            return UnboundPredicate(pred.op, name)
        logger.debug(f"Cannot project {pred.op.value} through {self}")
        return None

    def project(self, name: str, pred: BoundPredicate) -> Optional[UnboundPredicate]:
        """
        Inclusive projection onto bucket column *name*.

        Returns a predicate matching every partition that may hold a matching
        row, or None when the predicate cannot be used for pruning.
        """
        if isinstance(pred.term, BoundTransform):
            return project_transform_predicate(self, name, pred)

        if pred.is_unary_predicate():
            return self._project_unary(name, pred)

        if pred.is_literal_predicate() and pred.op is Operation.EQ:
            bucket = self.bind(pred.term.type)
            return UnboundPredicate(Operation.EQ, name, (bucket.apply(pred.literal),))

        if pred.is_set_predicate() and pred.op is Operation.IN:
            bucket = self.bind(pred.term.type)
            return transform_set(name, pred, bucket.apply)

        # Comparison predicates and not_eq/not_in cannot be projected
        logger.debug(f"No inclusive projection of {pred.op.value} through {self}")
        return None

    def project_strict(self, name: str, pred: BoundPredicate) -> Optional[UnboundPredicate]:
        """
        Strict projection onto bucket column *name*.

        Returns a predicate matching only partitions whose rows all match, or
        None when that cannot be guaranteed.
        """
        if isinstance(pred.term, BoundTransform):
            return project_transform_predicate(self, name, pred)

        if pred.is_unary_predicate():
            return self._project_unary(name, pred)

        if pred.is_literal_predicate() and pred.op is Operation.NOT_EQ:
            bucket = self.bind(pred.term.type)
            return UnboundPredicate(Operation.NOT_EQ, name, (bucket.apply(pred.literal),))

        if pred.is_set_predicate() and pred.op is Operation.NOT_IN:
            bucket = self.bind(pred.term.type)
            return transform_set(name, pred, bucket.apply)

        # No strict projection for comparison or equality
        logger.debug(f"No strict projection of {pred.op.value} through {self}")
        return None

    def __str__(self) -> str:
        return f"bucket[{self.num_buckets}]"

    def __repr__(self) -> str:
        return f"bucket[{self.num_buckets}]"


class BucketTransform(BucketBase):
    """Bucket transform over a single scalar column."""

    def can_transform(self, type_: BaseType) -> bool:
        return kind_for_type(type_) in SCALAR_KINDS


class MultiColumnBucket(BucketBase):
    """
    Bucket transform over several columns at once.

    The source is a struct whose fields are the bucketing columns. Only flat
    structs can be hashed; a nested member field is rejected when a value is
    bucketed.
    """

    def can_transform(self, type_: BaseType) -> bool:
        return type_.is_struct_type()


@lru_cache(maxsize=None)
def get_bucket(num_buckets: int) -> BucketTransform:
    """Shared scalar bucket transform for *num_buckets*."""
    return BucketTransform(num_buckets)


@lru_cache(maxsize=None)
def get_multi_column_bucket(num_buckets: int) -> MultiColumnBucket:
    """Shared multi-column bucket transform for *num_buckets*."""
    return MultiColumnBucket(num_buckets)


# =============================================================================
# BOUND TRANSFORM
# =============================================================================


@dataclass(frozen=True)
class BoundBucket:
    """
    A bucket transform resolved for one source type.

    Example:
        >>> bucket = get_bucket(10).bind(String())
        >>> bucket("iceberg")
        9
    """

    transform: BucketBase
    kind: ValueKind
    source_type: BaseType

    @property
    def num_buckets(self) -> int:
        return self.transform.num_buckets

    def hash(self, value: Any) -> int:
        """Canonical 32-bit hash of a non-null value of the source type."""
        if self.kind is ValueKind.STRUCT:
            if isinstance(value, Mapping):
                value = Record.from_document(self.source_type, value)
            return hash_struct(value)

        if self.kind is ValueKind.DECIMAL:
            return hash_decimal(rescale_decimal(value, self.source_type.scale))

        return hash_value(self.kind, value)

    def apply(self, value: Any) -> Optional[int]:
        """Bucket index of *value*, or None for None."""
        if value is None:
            return None
        return (self.hash(value) & INT32_MASK) % self.transform.num_buckets

    __call__ = apply

    def __str__(self) -> str:
        return f"{self.transform}({self.source_type})"
