"""
Expression model consumed by bucket projections.

Provides operations, references, bound/unbound predicates, builders and a
value evaluator.
"""

from .literals import coerce_literal
from .predicates import (
    LITERAL_OPERATIONS,
    MONGO_OPERATORS,
    SET_OPERATIONS,
    UNARY_OPERATIONS,
    BoundLiteralPredicate,
    BoundPredicate,
    BoundReference,
    BoundSetPredicate,
    BoundTransform,
    BoundUnaryPredicate,
    Operation,
    Reference,
    UnboundPredicate,
    equal,
    evaluate,
    greater_than,
    greater_than_or_equal,
    is_in,
    is_nan,
    is_null,
    less_than,
    less_than_or_equal,
    not_equal,
    not_in,
    not_nan,
    not_null,
    predicate,
)

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
    "coerce_literal",
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
