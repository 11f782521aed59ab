"""
Canonical value hashing for bucket partitioning.

================================================================================
HASH CONTRACT
================================================================================

Every supported value is reduced to a canonical byte string which is hashed
with MurmurHash3 x86 32-bit (seed 0). The result is a signed 32-bit integer.

The output decides which bucket, and therefore which partition, a value is
written to. It is persisted. Changing any rule below silently misroutes data,
so the rules are frozen under HASH_FORMAT_VERSION.

CANONICAL ENCODINGS
--------------------------------------------------------------------------------

    int (32-bit)    widened to 64-bit, then as long
    long (64-bit)   8 bytes, little-endian two's complement
    float (32-bit)  rounded to single precision, widened to double, then as double
    double          IEEE-754 bits, little-endian; -0.0 -> 0.0, any NaN ->
                    0x7ff8000000000000
    string          UTF-8 bytes
    binary          the bytes themselves (current window only)
    uuid            most-significant 8 bytes reversed, then least-significant
                    8 bytes reversed
    decimal         minimal big-endian two's complement bytes of the unscaled
                    value (scale is NOT part of the hash)

Reference vectors (shared with Apache Iceberg bucket partitioning):

    hash_int(34)                                       ->  2017239379
    hash_long(34)                                      ->  2017239379
    hash_decimal(Decimal("14.20"))                     -> -500754589
    hash_string("iceberg")                             ->  1210000089
    hash_uuid("f79c3e09-677c-4bbd-a479-3f349cb785e7")  ->  1488055340
    hash_bytes(b"\\x00\\x01\\x02\\x03")                    -> -188683207
    hash_double(1.0)                                   -> -142385009

================================================================================
"""

import math
import struct
import uuid
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Callable, Dict, Optional

import mmh3
from bson import Binary, Decimal128
from bson.binary import UUID_SUBTYPE

from ..constants import (
    CANONICAL_NAN_BITS,
    HASH_SEED,
    INT32_MAX,
    INT32_MIN,
    INT64_MAX,
    INT64_MIN,
)
from ..schema.types import BaseType, TypeID

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
    "to_float32",
    "to_uuid",
    "to_decimal",
    "rescale_decimal",
    "unscaled_bytes",
]


# =============================================================================
# VALUE KINDS
# =============================================================================


class ValueKind(Enum):
    """Closed set of value kinds a bucket transform can hash."""

    INTEGER = "int"
    LONG = "long"
    FLOAT = "float"
    DOUBLE = "double"
    STRING = "string"
    BINARY = "binary"
    UUID = "uuid"
    DECIMAL = "decimal"
    STRUCT = "struct"


SCALAR_KINDS = frozenset(k for k in ValueKind if k is not ValueKind.STRUCT)

_KIND_BY_TYPE_ID: Dict[TypeID, ValueKind] = {
    TypeID.INTEGER: ValueKind.INTEGER,
    TypeID.LONG: ValueKind.LONG,
    TypeID.FLOAT: ValueKind.FLOAT,
    TypeID.DOUBLE: ValueKind.DOUBLE,
    TypeID.STRING: ValueKind.STRING,
    TypeID.BINARY: ValueKind.BINARY,
    TypeID.UUID: ValueKind.UUID,
    TypeID.DECIMAL: ValueKind.DECIMAL,
    TypeID.STRUCT: ValueKind.STRUCT,
}


def kind_for_type(type_: BaseType) -> Optional[ValueKind]:
    """Return the hashable kind of *type_*, or None when it cannot be hashed."""
    return _KIND_BY_TYPE_ID.get(type_.type_id)


# =============================================================================
# PRIMITIVE HASHES
# =============================================================================


def _murmur3(data: bytes) -> int:
    return mmh3.hash(data, HASH_SEED, signed=True)


def _require(value: Any, kind: str) -> None:
    if value is None:
        raise TypeError(f"Cannot hash None as {kind}; null values have no bucket")


def _check_int(value: Any, lo: int, hi: int, kind: str) -> int:
    _require(value, kind)
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"Cannot hash {type(value).__name__} as {kind}")
    if not lo <= value <= hi:
        raise ValueError(f"Value {value} out of range for {kind}")
    return value


def hash_long(value: int) -> int:
    """Hash a 64-bit integer (8 bytes, little-endian)."""
    value = _check_int(value, INT64_MIN, INT64_MAX, "long")
    return _murmur3(struct.pack("<q", value))


def hash_int(value: int) -> int:
    """Hash a 32-bit integer. Widened to 64 bits, so hash_int(n) == hash_long(n)."""
    value = _check_int(value, INT32_MIN, INT32_MAX, "int")
    return _murmur3(struct.pack("<q", value))


def _double_bytes(value: float) -> bytes:
    if math.isnan(value):
        return struct.pack("<q", CANONICAL_NAN_BITS)
    if value == 0.0:
        # -0.0 == 0.0, so both must produce the same hash
        value = 0.0
    return struct.pack("<d", value)


def hash_double(value: float) -> int:
    """Hash a 64-bit float by its canonical IEEE-754 bit pattern."""
    _require(value, "double")
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise TypeError(f"Cannot hash {type(value).__name__} as double")
    try:
        value = float(value)
    except OverflowError:
        raise ValueError(f"Value {value} out of range for double") from None
    return _murmur3(_double_bytes(value))


def to_float32(value: float) -> float:
    """
    Round *value* to the nearest single-precision float.

    Raises:
        ValueError: If *value* is finite but beyond the single-precision range
    """
    try:
        return struct.unpack("<f", struct.pack("<f", float(value)))[0]
    except OverflowError:
        raise ValueError(f"Value {value} out of range for float") from None


def hash_float(value: float) -> int:
    """Hash a 32-bit float: round to single precision, then hash as double."""
    _require(value, "float")
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise TypeError(f"Cannot hash {type(value).__name__} as float")
    return _murmur3(_double_bytes(to_float32(value)))


def hash_string(value: str) -> int:
    """Hash the UTF-8 encoding of *value*."""
    _require(value, "string")
    if not isinstance(value, str):
        raise TypeError(f"Cannot hash {type(value).__name__} as string")
    return _murmur3(value.encode("utf-8"))


def hash_bytes(value: Any) -> int:
    """
    Hash a byte sequence.

    Accepts bytes, bytearray, memoryview (only the viewed window is hashed) and
    seekable binary streams such as io.BytesIO, where the bytes from the
    current position to the end are hashed. A stream's position is restored
    before returning, so callers can keep using the buffer.
    """
    _require(value, "binary")
    if isinstance(value, (bytes, bytearray, memoryview)):
        return _murmur3(bytes(value))

    if hasattr(value, "read") and hasattr(value, "seek") and hasattr(value, "tell"):
        position = value.tell()
        try:
            data = value.read()
        finally:
            value.seek(position)
        return _murmur3(bytes(data))

    raise TypeError(f"Cannot hash {type(value).__name__} as binary")


def to_uuid(value: Any) -> uuid.UUID:
    """
    Normalize UUID input to uuid.UUID.

    Accepts uuid.UUID, canonical text, 16 raw big-endian bytes, a 128-bit
    integer, or a bson Binary with the standard UUID subtype.
    """
    if isinstance(value, uuid.UUID):
        return value
    if isinstance(value, Binary) and value.subtype == UUID_SUBTYPE:
        return value.as_uuid()
    if isinstance(value, str):
        return uuid.UUID(value)
    if isinstance(value, (bytes, bytearray, memoryview)):
        raw = bytes(value)
        if len(raw) != 16:
            raise ValueError(f"UUID bytes must be 16 bytes long, got {len(raw)}")
        return uuid.UUID(bytes=raw)
    if isinstance(value, int) and not isinstance(value, bool):
        return uuid.UUID(int=value)
    raise TypeError(f"Cannot convert {type(value).__name__} to UUID")


def hash_uuid(value: Any) -> int:
    """Hash a UUID as its two 64-bit halves, each byte-reversed."""
    _require(value, "uuid")
    raw = to_uuid(value).bytes
    return _murmur3(raw[7::-1] + raw[:7:-1])


def to_decimal(value: Any) -> Decimal:
    """Normalize decimal input (Decimal, int, str, bson Decimal128) to Decimal."""
    if isinstance(value, Decimal128):
        value = value.to_decimal()
    elif isinstance(value, int) and not isinstance(value, bool):
        value = Decimal(value)
    elif isinstance(value, str):
        try:
            value = Decimal(value)
        except InvalidOperation:
            raise ValueError(f"Invalid decimal text: {value!r}") from None
    if not isinstance(value, Decimal):
        raise TypeError(f"Cannot convert {type(value).__name__} to decimal")
    if not value.is_finite():
        raise ValueError(f"Cannot hash non-finite decimal: {value}")
    return value


def rescale_decimal(value: Any, scale: int) -> Decimal:
    """
    Return *value* with exactly *scale* fractional digits.

    Raises:
        ValueError: If rescaling would lose digits
    """
    value = to_decimal(value)
    try:
        rescaled = value.quantize(Decimal(1).scaleb(-scale))
    except InvalidOperation:
        raise ValueError(f"Cannot rescale {value} to scale {scale}") from None
    if rescaled != value:
        raise ValueError(f"Cannot rescale {value} to scale {scale} without rounding")
    return rescaled


def unscaled_bytes(value: Decimal) -> bytes:
    """Minimal big-endian two's complement bytes of the unscaled value."""
    sign, digits, _ = value.as_tuple()
    unscaled = int("".join(map(str, digits)) or "0")
    if sign:
        unscaled = -unscaled
    # Shortest length that still leaves room for the sign bit
    bit_length = (unscaled if unscaled >= 0 else ~unscaled).bit_length()
    return unscaled.to_bytes(bit_length // 8 + 1, "big", signed=True)


def hash_decimal(value: Any) -> int:
    """
    Hash a decimal by its unscaled value.

    Decimal("14.20") and Decimal("14.2") hash differently; rescale first (see
    rescale_decimal) when values of one column may carry different scales.
    """
    _require(value, "decimal")
    return _murmur3(unscaled_bytes(to_decimal(value)))


# =============================================================================
# DISPATCH
# =============================================================================

_HASHERS: Dict[ValueKind, Callable[[Any], int]] = {
    ValueKind.INTEGER: hash_int,
    ValueKind.LONG: hash_long,
    ValueKind.FLOAT: hash_float,
    ValueKind.DOUBLE: hash_double,
    ValueKind.STRING: hash_string,
    ValueKind.BINARY: hash_bytes,
    ValueKind.UUID: hash_uuid,
    ValueKind.DECIMAL: hash_decimal,
}


def hash_value(kind: ValueKind, value: Any) -> int:
    """
    Hash *value* with the canonical rule for *kind*.

    Struct values are hashed by partbucket.hashing.struct.hash_struct; this
    function covers scalar kinds only.
    """
    try:
        hasher = _HASHERS[kind]
    except KeyError:
        raise ValueError(f"No scalar hash for kind: {kind.value}") from None
    return hasher(value)
