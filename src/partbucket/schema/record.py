"""
Struct values (records) for multi-column bucketing.

A Record pairs a Struct type with one value per field. Values are looked up by
field name; absent fields read as None. Records are built once and never
mutated, so they can be used as predicate literals and shared across threads.

Records are usually built from MongoDB-style documents:

    >>> schema = Struct([
    ...     NestedField(1, "account_id", Int()),
    ...     NestedField(2, "region", String()),
    ... ])
    >>> Record.from_document(schema, {"account_id": 7, "region": "eu"})
    Record(account_id=7, region='eu')

Dotted names reach into sub-documents the same way flattened columns do:
a field named "metadata.device_id" reads doc["metadata"]["device_id"] when
the document has no literal "metadata.device_id" key.
"""

from typing import Any, Dict, Mapping, Optional, Tuple

from bson import Binary, Decimal128
from bson.binary import UUID_SUBTYPE

from .types import Struct


def _lookup(document: Mapping[str, Any], name: str) -> Any:
    """Read a field by name, falling back to a dotted path into sub-documents."""
    if name in document:
        return document[name]

    current: Any = document
    for part in name.split("."):
        if not isinstance(current, Mapping) or part not in current:
            return None
        current = current[part]
    return current


def coerce_bson_value(value: Any) -> Any:
    """
    Convert BSON wrapper types to their plain Python equivalents.

    Decimal128 -> decimal.Decimal, Binary with the standard UUID subtype ->
    uuid.UUID. Everything else is returned unchanged.
    """
    if isinstance(value, Decimal128):
        return value.to_decimal()
    if isinstance(value, Binary) and value.subtype == UUID_SUBTYPE:
        return value.as_uuid()
    return value


class Record:
    """
    Immutable struct value.

    Example:
        >>> record = Record(schema, {"account_id": 7})
        >>> record.get_field("account_id")
        7
        >>> record.get_field("region") is None
        True
    """

    __slots__ = ("_struct", "_values")

    def __init__(self, struct_type: Struct, values: Optional[Mapping[str, Any]] = None):
        """
        Args:
            struct_type: Struct type describing the record's fields
            values: Field name -> value; missing names are absent (None)

        Raises:
            ValueError: If values names a field the struct does not have
        """
        values = dict(values or {})
        unknown = [name for name in values if not struct_type.has_field(name)]
        if unknown:
            raise ValueError(
                f"Fields {sorted(unknown)} not found in struct {struct_type}"
            )

        self._struct = struct_type
        self._values: Tuple[Any, ...] = tuple(
            values.get(f.name) for f in struct_type.fields
        )

    @classmethod
    def from_document(
        cls, struct_type: Struct, document: Mapping[str, Any]
    ) -> "Record":
        """
        Build a record from a document, keeping only the struct's fields.

        BSON wrapper values (Decimal128, UUID Binary) are converted to plain
        Python values.
        """
        return cls(
            struct_type,
            {
                f.name: coerce_bson_value(_lookup(document, f.name))
                for f in struct_type.fields
            },
        )

    def struct(self) -> Struct:
        return self._struct

    def get_field(self, name: str) -> Any:
        """Return the value of field *name*, or None when it is absent."""
        for f, value in zip(self._struct.fields, self._values):
            if f.name == name:
                return value
        raise ValueError(f"Field '{name}' not found in struct {self._struct}")

    def to_dict(self) -> Dict[str, Any]:
        return {f.name: v for f, v in zip(self._struct.fields, self._values)}

    def __eq__(self, other) -> bool:
        if not isinstance(other, Record):
            return False
        return self._struct == other._struct and self.to_dict() == other.to_dict()

    def __hash__(self) -> int:
        return hash(tuple(sorted(
            (f.field_id, _hashable(v))
            for f, v in zip(self._struct.fields, self._values)
        )))

    def __repr__(self) -> str:
        body = ", ".join(
            f"{f.name}={v!r}" for f, v in zip(self._struct.fields, self._values)
        )
        return f"Record({body})"


def _hashable(value: Any) -> Any:
    if isinstance(value, (bytearray, memoryview)):
        return bytes(value)
    return value
