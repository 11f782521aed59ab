"""
Canonical hashing for bucket partitioning.

- canonical: per-type canonical encodings hashed with MurmurHash3 x86 32-bit
- struct: multi-column hash over a flat struct's canonical string
"""

from .canonical import (
    SCALAR_KINDS,
    ValueKind,
    hash_bytes,
    hash_decimal,
    hash_double,
    hash_float,
    hash_int,
    hash_long,
    hash_string,
    hash_uuid,
    hash_value,
    kind_for_type,
    rescale_decimal,
)
from .struct import canonical_struct_string, hash_struct, render_value

__all__ = [
    "ValueKind",
    "SCALAR_KINDS",
    "kind_for_type",
    "hash_value",
    "hash_int",
    "hash_long",
    "hash_float",
    "hash_double",
    "hash_string",
    "hash_bytes",
    "hash_uuid",
    "hash_decimal",
    "rescale_decimal",
    "hash_struct",
    "canonical_struct_string",
    "render_value",
]
