"""
Shared constants for partbucket.

The hash constants below are part of the on-disk format: a value's bucket is
persisted in partition paths and manifests, so any change to them must come
with a HASH_FORMAT_VERSION bump.
"""

# =============================================================================
# HASH FORMAT
# =============================================================================

# MurmurHash3 x86 32-bit, seed 0
HASH_ALGORITHM = "murmur3_x86_32"
HASH_SEED = 0
HASH_FORMAT_VERSION = 1

# Clears the sign bit so the modulo is never negative
INT32_MASK = 0x7FFFFFFF

INT32_MIN = -(2**31)
INT32_MAX = 2**31 - 1
INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1

# Every NaN is hashed as this bit pattern
CANONICAL_NAN_BITS = 0x7FF8000000000000

# Separates names and values in the multi-column canonical string
UNIT_SEPARATOR = "\x1f"

# =============================================================================
# PROJECTION / STORAGE
# =============================================================================

# Default bucket column name is "<source>_bucket"
BUCKET_FIELD_SUFFIX = "_bucket"

# Upper bound on value combinations projected through a multi-column bucket
MAX_PROJECTED_COMBINATIONS = 1024
