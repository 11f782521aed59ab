"""
Type definitions for partbucket's schema system.

These types describe the columns a bucket transform can be bound to. They are
deliberately small: each type knows its TypeID, whether it is a struct or a
nested type, and how it maps to an Apache Arrow type so bucketed data can be
produced directly from pyarrow tables.

Supported Types:
- Primitives: Int (32/64 bits), Float (32/64 bits), String, Binary, Uuid,
  Decimal, Bool
- Complex: Struct (fields with stable ids), List, Map

Field ids:
- Every struct field carries a field id assigned by the schema. Ids are unique
  within a struct and never change when fields are reordered, which is what
  makes multi-column bucket hashes independent of physical column order.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Sequence, Tuple, Union

import pyarrow as pa


class TypeID(Enum):
    """Type identifiers."""

    BOOLEAN = "boolean"
    INTEGER = "int"
    LONG = "long"
    FLOAT = "float"
    DOUBLE = "double"
    STRING = "string"
    BINARY = "binary"
    UUID = "uuid"
    DECIMAL = "decimal"
    STRUCT = "struct"
    LIST = "list"
    MAP = "map"


class BaseType(ABC):
    """Base class for all partbucket types."""

    @property
    @abstractmethod
    def type_id(self) -> TypeID:
        """Identifier of this type."""

    @abstractmethod
    def to_arrow(self) -> pa.DataType:
        """Convert to PyArrow data type."""

    def is_struct_type(self) -> bool:
        return False

    def is_nested_type(self) -> bool:
        return False

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"

    def __str__(self) -> str:
        return self.type_id.value

    def __eq__(self, other) -> bool:
        """Compare types for equality."""
        return isinstance(other, self.__class__)

    def __hash__(self) -> int:
        """Make types hashable for use in sets/dicts."""
        return hash(self.__class__.__name__)


class String(BaseType):
    """UTF-8 string type."""

    @property
    def type_id(self) -> TypeID:
        return TypeID.STRING

    def to_arrow(self) -> pa.DataType:
        return pa.string()


class Bool(BaseType):
    """Boolean type."""

    @property
    def type_id(self) -> TypeID:
        return TypeID.BOOLEAN

    def to_arrow(self) -> pa.DataType:
        return pa.bool_()


class Binary(BaseType):
    """Variable-length byte sequence."""

    @property
    def type_id(self) -> TypeID:
        return TypeID.BINARY

    def to_arrow(self) -> pa.DataType:
        return pa.binary()


class Uuid(BaseType):
    """128-bit UUID (stored as 16 big-endian bytes in Arrow)."""

    @property
    def type_id(self) -> TypeID:
        return TypeID.UUID

    def to_arrow(self) -> pa.DataType:
        return pa.binary(16)


@dataclass(frozen=True, eq=False)
class Int(BaseType):
    """Integer type."""
    bits: int = 64

    @property
    def type_id(self) -> TypeID:
        return TypeID.LONG if self.bits == 64 else TypeID.INTEGER

    def to_arrow(self) -> pa.DataType:
        return pa.int64() if self.bits == 64 else pa.int32()

    def __post_init__(self):
        if self.bits not in (32, 64):
            raise ValueError("Int bits must be either 32 or 64")

    def __repr__(self) -> str:
        return f"Int(bits={self.bits})"

    def __eq__(self, other) -> bool:
        return isinstance(other, Int) and self.bits == other.bits

    def __hash__(self) -> int:
        return hash(("Int", self.bits))


@dataclass(frozen=True, eq=False)
class Float(BaseType):
    """Floating-point type."""
    bits: int = 64

    @property
    def type_id(self) -> TypeID:
        return TypeID.DOUBLE if self.bits == 64 else TypeID.FLOAT

    def to_arrow(self) -> pa.DataType:
        return pa.float64() if self.bits == 64 else pa.float32()

    def __post_init__(self):
        if self.bits not in (32, 64):
            raise ValueError("Float bits must be either 32 or 64")

    def __repr__(self) -> str:
        return f"Float(bits={self.bits})"

    def __eq__(self, other) -> bool:
        return isinstance(other, Float) and self.bits == other.bits

    def __hash__(self) -> int:
        return hash(("Float", self.bits))


@dataclass(frozen=True, eq=False)
class Decimal(BaseType):
    """Fixed-point decimal type with a declared precision and scale."""
    precision: int = 38
    scale: int = 0

    @property
    def type_id(self) -> TypeID:
        return TypeID.DECIMAL

    def to_arrow(self) -> pa.DataType:
        return pa.decimal128(self.precision, self.scale)

    def __post_init__(self):
        if not 1 <= self.precision <= 38:
            raise ValueError("Decimal precision must be between 1 and 38")
        if not 0 <= self.scale <= self.precision:
            raise ValueError("Decimal scale must be between 0 and precision")

    def __repr__(self) -> str:
        return f"Decimal(precision={self.precision}, scale={self.scale})"

    def __str__(self) -> str:
        return f"decimal({self.precision}, {self.scale})"

    def __eq__(self, other) -> bool:
        return (
            isinstance(other, Decimal)
            and self.precision == other.precision
            and self.scale == other.scale
        )

    def __hash__(self) -> int:
        return hash(("Decimal", self.precision, self.scale))


@dataclass(frozen=True)
class NestedField:
    """
    A struct member: stable field id, name and declared type.

    Example:
        NestedField(field_id=1, name="account_id", field_type=Int(bits=64))
    """

    field_id: int
    name: str
    field_type: BaseType
    required: bool = False

    def __str__(self) -> str:
        flag = "required" if self.required else "optional"
        return f"{self.field_id}: {self.name}: {flag} {self.field_type}"


class Struct(BaseType):
    """Nested struct type."""

    def __init__(
        self,
        fields: Union[Sequence[NestedField], Dict[str, BaseType]],
    ):
        """
        Args:
            fields: NestedFields, or a dict mapping field name to type (field
                ids are then assigned 1..n in dict order)

        Raises:
            ValueError: If two fields share a field id or a name
        """
        if isinstance(fields, dict):
            fields = [
                NestedField(field_id=i, name=name, field_type=field_type)
                for i, (name, field_type) in enumerate(fields.items(), start=1)
            ]

        self.fields: Tuple[NestedField, ...] = tuple(fields)
        self._by_name: Dict[str, NestedField] = {}
        self._by_id: Dict[int, NestedField] = {}

        for f in self.fields:
            if f.field_id in self._by_id:
                raise ValueError(
                    f"Duplicate field id {f.field_id}: "
                    f"'{self._by_id[f.field_id].name}' and '{f.name}'"
                )
            if f.name in self._by_name:
                raise ValueError(f"Duplicate field name: '{f.name}'")
            self._by_id[f.field_id] = f
            self._by_name[f.name] = f

    @property
    def type_id(self) -> TypeID:
        return TypeID.STRUCT

    def is_struct_type(self) -> bool:
        return True

    def is_nested_type(self) -> bool:
        return True

    def field(self, name: str) -> Optional[NestedField]:
        return self._by_name.get(name)

    def has_field(self, name: str) -> bool:
        return name in self._by_name

    def select(self, names: Sequence[str]) -> "Struct":
        """
        Build a struct from a subset of this struct's fields, keeping ids.

        Raises:
            ValueError: If a name is not a field of this struct
        """
        missing = [n for n in names if n not in self._by_name]
        if missing:
            raise ValueError(
                f"Fields {missing} not found in struct. "
                f"Available fields: {sorted(self._by_name)}"
            )
        return Struct([self._by_name[n] for n in names])

    def to_arrow(self) -> pa.DataType:
        return pa.struct([
            pa.field(f.name, f.field_type.to_arrow(), nullable=not f.required)
            for f in self.fields
        ])

    def __repr__(self) -> str:
        field_str = ", ".join(str(f) for f in self.fields)
        return f"Struct({{{field_str}}})"

    def __str__(self) -> str:
        field_str = ", ".join(str(f) for f in self.fields)
        return f"struct<{field_str}>"

    def __eq__(self, other) -> bool:
        if not isinstance(other, Struct):
            return False
        return sorted(self.fields, key=lambda f: f.field_id) == sorted(
            other.fields, key=lambda f: f.field_id
        )

    def __hash__(self) -> int:
        return hash(tuple(sorted(f.field_id for f in self.fields)))


class List(BaseType):
    """List type."""

    def __init__(self, element_type: BaseType):
        """
        Args:
            element_type: Type of list elements
        """
        self.element_type = element_type

    @property
    def type_id(self) -> TypeID:
        return TypeID.LIST

    def is_nested_type(self) -> bool:
        return True

    def to_arrow(self) -> pa.DataType:
        return pa.list_(self.element_type.to_arrow())

    def __repr__(self) -> str:
        return f"List({self.element_type!r})"

    def __str__(self) -> str:
        return f"list<{self.element_type}>"

    def __eq__(self, other) -> bool:
        return isinstance(other, List) and self.element_type == other.element_type

    def __hash__(self) -> int:
        return hash(("List", self.element_type))


class Map(BaseType):
    """Map type."""

    def __init__(self, key_type: BaseType, value_type: BaseType):
        self.key_type = key_type
        self.value_type = value_type

    @property
    def type_id(self) -> TypeID:
        return TypeID.MAP

    def is_nested_type(self) -> bool:
        return True

    def to_arrow(self) -> pa.DataType:
        return pa.map_(self.key_type.to_arrow(), self.value_type.to_arrow())

    def __repr__(self) -> str:
        return f"Map({self.key_type!r}, {self.value_type!r})"

    def __str__(self) -> str:
        return f"map<{self.key_type}, {self.value_type}>"

    def __eq__(self, other) -> bool:
        return (
            isinstance(other, Map)
            and self.key_type == other.key_type
            and self.value_type == other.value_type
        )

    def __hash__(self) -> int:
        return hash(("Map", self.key_type, self.value_type))
