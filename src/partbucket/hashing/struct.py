"""
Multi-column (struct) hashing.

A struct is hashed by building one canonical string out of its fields and
hashing that string with the text rule:

    for each field, sorted by field id:
        name + US + text(value) + US          (US = unit separator, U+001F)

Absent values render as empty text but still contribute their name and both
separators. The field list comes from the struct type, so a struct without a
field never hashes like one carrying it. Within one struct type a None string
and an empty string render identically.

Sorting by field id makes the hash independent of physical column order.
Only flat structs are supported: a struct whose fields include a struct, list
or map is rejected before anything is hashed.

Rendering is keyed by the declared field type, never by the Python type of the
value, so the same logical value always renders the same way:

    Int           decimal digits                 34
    Float(64)     shortest round-trip repr       0.1, 1e+16, -0.0
    Float(32)     shortest single-precision      0.1 (not 0.10000000149011612)
    Decimal(p, s) rescaled to s, str(Decimal)    14.20
    Bool          true / false
    Uuid          lowercase hyphenated           f79c3e09-677c-...
    Binary        lowercase hex                  00010203
    String        unchanged
"""

import math
from typing import Any, Callable, Dict

from ..constants import UNIT_SEPARATOR
from ..schema.record import Record
from ..schema.types import BaseType, Decimal as DecimalType, TypeID
from .canonical import hash_string, rescale_decimal, to_float32, to_uuid

__all__ = [
    "render_value",
    "canonical_struct_string",
    "hash_struct",
]


def _render_float32(value: float) -> str:
    single = to_float32(value)
    if math.isnan(single) or math.isinf(single):
        return repr(single)
    # Shortest representation that maps back to the same single-precision value
    for digits in range(1, 10):
        text = f"{single:.{digits}g}"
        if to_float32(float(text)) == single:
            return repr(float(text))
    return repr(single)


def _render_bool(value: Any) -> str:
    return "true" if value else "false"


def _render_binary(value: Any) -> str:
    return bytes(value).hex()


_RENDERERS: Dict[TypeID, Callable[[Any], str]] = {
    TypeID.BOOLEAN: _render_bool,
    TypeID.INTEGER: lambda v: str(int(v)),
    TypeID.LONG: lambda v: str(int(v)),
    TypeID.FLOAT: _render_float32,
    TypeID.DOUBLE: lambda v: repr(float(v)),
    TypeID.STRING: str,
    TypeID.BINARY: _render_binary,
    TypeID.UUID: lambda v: str(to_uuid(v)),
}


def render_value(field_type: BaseType, value: Any) -> str:
    """Render a non-null field value as stable text for the canonical string."""
    if isinstance(field_type, DecimalType):
        return str(rescale_decimal(value, field_type.scale))

    renderer = _RENDERERS.get(field_type.type_id)
    if renderer is None:
        raise ValueError(f"Cannot render value of type {field_type}")
    return renderer(value)


def canonical_struct_string(record: Record) -> str:
    """
    Build the canonical string hashed for *record*.

    Raises:
        ValueError: If any field of the record's struct is a nested type
    """
    fields = list(record.struct().fields)

    for field in fields:
        if field.field_type.is_nested_type():
            raise ValueError(
                "when bucketing on multiple columns, bucketing columns cannot be "
                f"of nested field type: '{field.name}' is {field.field_type}"
            )

    parts = []
    for field in sorted(fields, key=lambda f: f.field_id):
        value = record.get_field(field.name)
        text = "" if value is None else render_value(field.field_type, value)
        parts.append(f"{field.name}{UNIT_SEPARATOR}{text}{UNIT_SEPARATOR}")

    return "".join(parts)


def hash_struct(record: Record) -> int:
    """Hash a flat struct value (see module docstring for the canonical form)."""
    if record is None:
        raise TypeError("Cannot hash None as struct; null values have no bucket")
    return hash_string(canonical_struct_string(record))
