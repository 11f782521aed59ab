"""
Schema system for partbucket.

Provides type descriptors and struct records used to bind bucket transforms.
"""

from .record import Record, coerce_bson_value
from .types import (
    BaseType,
    Binary,
    Bool,
    Decimal,
    Float,
    Int,
    List,
    Map,
    NestedField,
    String,
    Struct,
    TypeID,
    Uuid,
)

# Import types module for Types.X syntax
from . import types as Types

__all__ = [
    # Types module for Types.X syntax
    "Types",
    # Individual type classes
    "TypeID",
    "BaseType",
    "String",
    "Bool",
    "Binary",
    "Uuid",
    "Int",
    "Float",
    "Decimal",
    "NestedField",
    "Struct",
    "List",
    "Map",
    # Records
    "Record",
    "coerce_bson_value",
]
