"""
Predicate model for partition pruning.

================================================================================
UNBOUND VS BOUND
================================================================================

UnboundPredicate
    Refers to a column by name and carries raw literals. This is what
    projections produce ("bucket column X is in {1, 4}") and what
    parse_filter() builds from MongoDB filters. It can be rendered back to a
    MongoDB filter with to_mongo().

BoundPredicate
    Refers to a resolved term (a BoundReference to a struct field, or a
    BoundTransform applied on top of one) and carries literals coerced to the
    term's type. Bucket transforms only ever project bound predicates.

Three shapes of bound predicate exist, mirroring the operation groups:

    BoundUnaryPredicate     is_null, not_null, is_nan, not_nan
    BoundLiteralPredicate   lt, lt_eq, gt, gt_eq, eq, not_eq
    BoundSetPredicate       in, not_in

================================================================================
NULL SEMANTICS
================================================================================

Evaluation follows MongoDB: a null (or missing) value never satisfies eq,
in or an ordering comparison, and always satisfies not_eq and not_in.
Bucketing maps null to null, so the same rule applied on the bucket column
keeps projections consistent.
"""

import math
from abc import ABC
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Iterable, Tuple

from bson import Decimal128

from ..schema.record import Record
from ..schema.types import BaseType, NestedField, Struct
from .literals import coerce_literal

__all__ = [
    "Operation",
    "UNARY_OPERATIONS",
    "LITERAL_OPERATIONS",
    "SET_OPERATIONS",
    "MONGO_OPERATORS",
    "Reference",
    "BoundReference",
    "BoundTransform",
    "UnboundPredicate",
    "BoundPredicate",
    "BoundUnaryPredicate",
    "BoundLiteralPredicate",
    "BoundSetPredicate",
    "evaluate",
    "predicate",
    "is_null",
    "not_null",
    "is_nan",
    "not_nan",
    "equal",
    "not_equal",
    "less_than",
    "less_than_or_equal",
    "greater_than",
    "greater_than_or_equal",
    "is_in",
    "not_in",
]


# =============================================================================
# OPERATIONS
# =============================================================================


class Operation(Enum):
    """Predicate operations."""

    IS_NULL = "is_null"
    NOT_NULL = "not_null"
    IS_NAN = "is_nan"
    NOT_NAN = "not_nan"
    LT = "lt"
    LT_EQ = "lt_eq"
    GT = "gt"
    GT_EQ = "gt_eq"
    EQ = "eq"
    NOT_EQ = "not_eq"
    IN = "in"
    NOT_IN = "not_in"


UNARY_OPERATIONS = frozenset(
    {Operation.IS_NULL, Operation.NOT_NULL, Operation.IS_NAN, Operation.NOT_NAN}
)
LITERAL_OPERATIONS = frozenset(
    {
        Operation.LT,
        Operation.LT_EQ,
        Operation.GT,
        Operation.GT_EQ,
        Operation.EQ,
        Operation.NOT_EQ,
    }
)
SET_OPERATIONS = frozenset({Operation.IN, Operation.NOT_IN})

# Operation -> MongoDB query operator
MONGO_OPERATORS: Dict[Operation, str] = {
    Operation.LT: "$lt",
    Operation.LT_EQ: "$lte",
    Operation.GT: "$gt",
    Operation.GT_EQ: "$gte",
    Operation.EQ: "$eq",
    Operation.NOT_EQ: "$ne",
    Operation.IN: "$in",
    Operation.NOT_IN: "$nin",
}


def _is_nan(value: Any) -> bool:
    return isinstance(value, float) and math.isnan(value)


def evaluate(op: Operation, value: Any, literals: Tuple[Any, ...] = ()) -> bool:
    """
    Evaluate *op* against a single column value.

    Examples:
        >>> evaluate(Operation.IN, 3, (1, 3))
        True
        >>> evaluate(Operation.NOT_EQ, None, (5,))
        True
    """
    if op is Operation.IS_NULL:
        return value is None
    if op is Operation.NOT_NULL:
        return value is not None
    if op is Operation.IS_NAN:
        return _is_nan(value)
    if op is Operation.NOT_NAN:
        return not _is_nan(value)

    if op is Operation.NOT_EQ:
        return value is None or value != literals[0]
    if op is Operation.NOT_IN:
        return value is None or all(value != lit for lit in literals)

    if value is None:
        return False
    if op is Operation.EQ:
        return value == literals[0]
    if op is Operation.IN:
        return any(value == lit for lit in literals)
    if op is Operation.LT:
        return value < literals[0]
    if op is Operation.LT_EQ:
        return value <= literals[0]
    if op is Operation.GT:
        return value > literals[0]
    if op is Operation.GT_EQ:
        return value >= literals[0]

    raise ValueError(f"Unknown operation: {op}")


# =============================================================================
# TERMS
# =============================================================================


@dataclass(frozen=True)
class Reference:
    """Unbound reference to a column by name."""

    name: str

    def bind(self, schema: Struct) -> "BoundReference":
        field = schema.field(self.name)
        if field is None:
            raise ValueError(
                f"Cannot find field '{self.name}' in struct. "
                f"Available fields: {sorted(f.name for f in schema.fields)}"
            )
        return BoundReference(field)


@dataclass(frozen=True)
class BoundReference:
    """Reference resolved to a struct field."""

    field: NestedField

    @property
    def name(self) -> str:
        return self.field.name

    @property
    def field_id(self) -> int:
        return self.field.field_id

    @property
    def type(self) -> BaseType:
        return self.field.field_type

    def __str__(self) -> str:
        return f"ref({self.name})"


@dataclass(frozen=True)
class BoundTransform:
    """
    A transform applied on top of a bound reference.

    Example:
        BoundTransform(ref, get_bucket(16)) is the term "bucket[16](ref)".
    """

    ref: BoundReference
    transform: Any

    @property
    def name(self) -> str:
        return self.ref.name

    @property
    def type(self) -> BaseType:
        return self.transform.result_type(self.ref.type)

    def __str__(self) -> str:
        return f"{self.transform}({self.ref})"


# =============================================================================
# UNBOUND PREDICATES
# =============================================================================


def _dedupe(values: Iterable[Any]) -> Tuple[Any, ...]:
    unique = []
    for value in values:
        if not any(value == seen for seen in unique):
            unique.append(value)
    return tuple(unique)


def _to_mongo_value(value: Any) -> Any:
    if isinstance(value, Decimal):
        return Decimal128(value)
    if isinstance(value, Record):
        return {k: _to_mongo_value(v) for k, v in value.to_dict().items()}
    return value


@dataclass(frozen=True)
class UnboundPredicate:
    """
    Predicate over a column name with raw literals.

    Example:
        >>> p = is_in("id_bucket", [3, 1])
        >>> p.to_mongo()
        {'id_bucket': {'$in': [3, 1]}}
    """

    op: Operation
    term: str
    literals: Tuple[Any, ...] = ()

    def __post_init__(self):
        if self.op in UNARY_OPERATIONS and self.literals:
            raise ValueError(f"{self.op.value} predicates take no literals")
        if self.op in LITERAL_OPERATIONS and len(self.literals) != 1:
            raise ValueError(f"{self.op.value} predicates take exactly one literal")

    @property
    def literal(self) -> Any:
        if self.op not in LITERAL_OPERATIONS:
            raise ValueError(f"{self.op.value} predicate has no single literal")
        return self.literals[0]

    def test(self, value: Any) -> bool:
        """Evaluate against a value of the referenced column."""
        return evaluate(self.op, value, self.literals)

    def bind(self, schema: Struct) -> "BoundPredicate":
        """
        Resolve the column in *schema* and coerce literals to its type.

        Raises:
            ValueError: If the column is missing or a literal does not fit
        """
        ref = Reference(self.term).bind(schema)

        if self.op in UNARY_OPERATIONS:
            return BoundUnaryPredicate(self.op, ref)

        literals = tuple(coerce_literal(ref.type, v) for v in self.literals)
        if self.op in SET_OPERATIONS:
            return BoundSetPredicate(self.op, ref, _dedupe(literals))
        return BoundLiteralPredicate(self.op, ref, literals[0])

    def to_mongo(self) -> Dict[str, Any]:
        """Render as a MongoDB filter document."""
        if self.op is Operation.IS_NULL:
            return {self.term: None}
        if self.op is Operation.NOT_NULL:
            return {self.term: {"$ne": None}}
        if self.op is Operation.IS_NAN:
            return {self.term: {"$eq": math.nan}}
        if self.op is Operation.NOT_NAN:
            return {self.term: {"$ne": math.nan}}

        operator = MONGO_OPERATORS[self.op]
        if self.op in SET_OPERATIONS:
            return {self.term: {operator: [_to_mongo_value(v) for v in self.literals]}}
        return {self.term: {operator: _to_mongo_value(self.literal)}}

    def __str__(self) -> str:
        if self.op in UNARY_OPERATIONS:
            return f"{self.op.value}({self.term})"
        if self.op in SET_OPERATIONS:
            return f"{self.term} {self.op.value} {list(self.literals)}"
        return f"{self.term} {self.op.value} {self.literal!r}"


# =============================================================================
# BOUND PREDICATES
# =============================================================================


class BoundPredicate(ABC):
    """Predicate over a resolved term."""

    def __init__(self, op: Operation, term: Any):
        self.op = op
        self.term = term

    def is_unary_predicate(self) -> bool:
        return False

    def is_literal_predicate(self) -> bool:
        return False

    def is_set_predicate(self) -> bool:
        return False

    @property
    def literals(self) -> Tuple[Any, ...]:
        return ()

    def test(self, value: Any) -> bool:
        """Evaluate against a value of the term."""
        return evaluate(self.op, value, self.literals)

    def __eq__(self, other) -> bool:
        return (
            type(self) is type(other)
            and self.op is other.op
            and self.term == other.term
            and self.literals == other.literals
        )

    def __hash__(self) -> int:
        return hash((self.op, self.term))

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.op.value}, {self.term})"


class BoundUnaryPredicate(BoundPredicate):
    def __init__(self, op: Operation, term: Any):
        if op not in UNARY_OPERATIONS:
            raise ValueError(f"Not a unary operation: {op.value}")
        super().__init__(op, term)

    def is_unary_predicate(self) -> bool:
        return True


class BoundLiteralPredicate(BoundPredicate):
    def __init__(self, op: Operation, term: Any, literal: Any):
        if op not in LITERAL_OPERATIONS:
            raise ValueError(f"Not a literal operation: {op.value}")
        super().__init__(op, term)
        self.literal = literal

    def is_literal_predicate(self) -> bool:
        return True

    @property
    def literals(self) -> Tuple[Any, ...]:
        return (self.literal,)

    def __repr__(self) -> str:
        return f"BoundLiteralPredicate({self.op.value}, {self.term}, {self.literal!r})"


class BoundSetPredicate(BoundPredicate):
    def __init__(self, op: Operation, term: Any, literals: Iterable[Any]):
        if op not in SET_OPERATIONS:
            raise ValueError(f"Not a set operation: {op.value}")
        super().__init__(op, term)
        self._literals = tuple(literals)

    def is_set_predicate(self) -> bool:
        return True

    @property
    def literals(self) -> Tuple[Any, ...]:
        return self._literals

    def __repr__(self) -> str:
        return f"BoundSetPredicate({self.op.value}, {self.term}, {list(self._literals)!r})"


# =============================================================================
# BUILDERS
# =============================================================================

_NO_VALUE = object()


def predicate(op: Operation, name: str, value: Any = _NO_VALUE) -> UnboundPredicate:
    """
    Build an unbound predicate over column *name*.

    Unary operations take no value, literal operations take one value, set
    operations take an iterable of values (duplicates are dropped).
    """
    if op in UNARY_OPERATIONS:
        if value is not _NO_VALUE:
            raise ValueError(f"{op.value} predicates take no value")
        return UnboundPredicate(op, name)

    if value is _NO_VALUE:
        raise ValueError(f"{op.value} predicates require a value")

    if op in SET_OPERATIONS:
        if isinstance(value, (str, bytes)) or not isinstance(value, Iterable):
            raise TypeError(f"{op.value} predicates require an iterable of values")
        return UnboundPredicate(op, name, _dedupe(value))

    return UnboundPredicate(op, name, (value,))


def is_null(name: str) -> UnboundPredicate:
    return predicate(Operation.IS_NULL, name)


def not_null(name: str) -> UnboundPredicate:
    return predicate(Operation.NOT_NULL, name)


def is_nan(name: str) -> UnboundPredicate:
    return predicate(Operation.IS_NAN, name)


def not_nan(name: str) -> UnboundPredicate:
    return predicate(Operation.NOT_NAN, name)


def equal(name: str, value: Any) -> UnboundPredicate:
    return predicate(Operation.EQ, name, value)


def not_equal(name: str, value: Any) -> UnboundPredicate:
    return predicate(Operation.NOT_EQ, name, value)


def less_than(name: str, value: Any) -> UnboundPredicate:
    return predicate(Operation.LT, name, value)


def less_than_or_equal(name: str, value: Any) -> UnboundPredicate:
    return predicate(Operation.LT_EQ, name, value)


def greater_than(name: str, value: Any) -> UnboundPredicate:
    return predicate(Operation.GT, name, value)


def greater_than_or_equal(name: str, value: Any) -> UnboundPredicate:
    return predicate(Operation.GT_EQ, name, value)


def is_in(name: str, values: Iterable[Any]) -> UnboundPredicate:
    return predicate(Operation.IN, name, values)


def not_in(name: str, values: Iterable[Any]) -> UnboundPredicate:
    return predicate(Operation.NOT_IN, name, values)
