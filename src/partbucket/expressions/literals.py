"""Literal coercion: convert predicate operands to a column's declared type."""

import math
from decimal import Decimal
from typing import Any, Callable, Dict, Mapping

from ..constants import INT32_MAX, INT32_MIN, INT64_MAX, INT64_MIN
from ..hashing.canonical import rescale_decimal, to_float32, to_uuid
from ..schema.record import Record, coerce_bson_value
from ..schema.types import BaseType, Decimal as DecimalType, Struct, TypeID


def _integral(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float, Decimal)):
        raise TypeError(f"Expected an integer literal, got {type(value).__name__}")
    if isinstance(value, int):
        return value
    # 34.0 and Decimal("34") compare equal to 34 in a query
    if isinstance(value, float) and not math.isfinite(value):
        raise ValueError(f"Integer literal {value} is not finite")
    if isinstance(value, Decimal) and not value.is_finite():
        raise ValueError(f"Integer literal {value} is not finite")
    if value != int(value):
        raise ValueError(f"Integer literal {value} has a fractional part")
    return int(value)


def _to_int(lo: int, hi: int) -> Callable[[Any], int]:
    def convert(value: Any) -> int:
        value = _integral(value)
        if not lo <= value <= hi:
            raise ValueError(f"Integer literal {value} out of range [{lo}, {hi}]")
        return value

    return convert


def _to_double(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float, Decimal)):
        raise TypeError(f"Expected a numeric literal, got {type(value).__name__}")
    try:
        result = float(value)
    except OverflowError:
        raise ValueError(f"Numeric literal {value} out of range for double") from None
    if isinstance(value, Decimal) and value.is_finite() and Decimal(result) != value:
        raise ValueError(f"Decimal literal {value} has no exact double value")
    return result


def _to_float(value: Any) -> float:
    return to_float32(_to_double(value))


def _to_string(value: Any) -> str:
    if not isinstance(value, str):
        raise TypeError(f"Expected a string literal, got {type(value).__name__}")
    return value


def _to_binary(value: Any) -> bytes:
    if not isinstance(value, (bytes, bytearray, memoryview)):
        raise TypeError(f"Expected a binary literal, got {type(value).__name__}")
    return bytes(value)


def _to_bool(value: Any) -> bool:
    if not isinstance(value, bool):
        raise TypeError(f"Expected a boolean literal, got {type(value).__name__}")
    return value


_CONVERTERS: Dict[TypeID, Callable[[Any], Any]] = {
    TypeID.BOOLEAN: _to_bool,
    TypeID.INTEGER: _to_int(INT32_MIN, INT32_MAX),
    TypeID.LONG: _to_int(INT64_MIN, INT64_MAX),
    TypeID.FLOAT: _to_float,
    TypeID.DOUBLE: _to_double,
    TypeID.STRING: _to_string,
    TypeID.BINARY: _to_binary,
    TypeID.UUID: to_uuid,
}


def coerce_literal(type_: BaseType, value: Any) -> Any:
    """
    Convert *value* to the Python representation used for *type_*.

    BSON wrapper values are unwrapped first. Decimals are rescaled to the
    declared scale and checked against its precision. Integer columns accept
    floats and decimals with an integral value, since a query compares them
    numerically. Structs are built as Records from mappings.

    Raises:
        ValueError: For null literals or values that do not fit the type
        TypeError: For values of an incompatible Python type
    """
    if value is None:
        raise ValueError("Invalid null literal: use is_null / not_null instead")

    value = coerce_bson_value(value)

    if isinstance(type_, DecimalType):
        if isinstance(value, float):
            value = Decimal(value)
        rescaled = rescale_decimal(value, type_.scale)
        if len(rescaled.as_tuple().digits) > type_.precision:
            raise ValueError(f"Decimal literal {rescaled} exceeds precision {type_.precision}")
        return rescaled

    if isinstance(type_, Struct):
        if isinstance(value, Record):
            return value
        if isinstance(value, Mapping):
            return Record.from_document(type_, value)
        raise TypeError(f"Expected a record literal, got {type(value).__name__}")

    converter = _CONVERTERS.get(type_.type_id)
    if converter is None:
        raise ValueError(f"Cannot use literals with type {type_}")
    return converter(value)
