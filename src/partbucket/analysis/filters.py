"""
MongoDB filter analysis for bucket pruning.

================================================================================
DATA FLOW - FILTER TO BUCKET FILTER
================================================================================

This module rewrites a MongoDB find() filter written against source columns
into a filter over a bucket column, so a planner can skip bucket partitions.

INPUT FILTER:
    {
        "account_id": {"$in": [7, 9]},
        "status": "active",
        "value": {"$gt": 100},
    }

STEP 1: parse_filter() splits the conjunction into predicates:
    account_id in [7, 9]
    status eq 'active'
    value gt 100

STEP 2: predicates on the bucketed column are bound to the schema and
projected through the bucket transform (bucket[16] on account_id):
    account_id in [7, 9]   ->  account_id_bucket in [bucket(7), bucket(9)]
    status eq 'active'     ->  (other column, dropped)
    value gt 100           ->  (other column, dropped)

OUTPUT (inclusive):
    {"account_id_bucket": {"$in": [bucket(7), bucket(9)]}}

Dropping a conjunct makes an inclusive filter match MORE partitions, which is
always safe. Strict filters are the opposite: they must not match a partition
unless every row in it matches, so any conjunct that cannot be projected
makes the whole strict result None.

MULTI-COLUMN BUCKETS
--------------------------------------------------------------------------------

With a MultiColumnBucket over (account_id, region) a partition can only be
located when every bucketed column is pinned to a finite set of values:

    {"account_id": {"$in": [7, 9]}, "region": "eu"}
        -> records (7, 'eu'), (9, 'eu')
        -> {"account_id_region_bucket": {"$in": [bucket(r) for r in records]}}

The cartesian product is capped by MAX_PROJECTED_COMBINATIONS. There is no
strict multi-column projection: a differing struct says nothing about which
single column differs.

SUPPORTED OPERATORS
--------------------------------------------------------------------------------
    {"f": v}                       eq   (v=None -> is_null, v=NaN -> is_nan)
    $eq $ne                        eq / not_eq (None and NaN as above)
    $gt $gte $lt $lte              ordering comparisons
    $in $nin                       set membership
    $and                           conjunction (recursive)

Every other clause ($or, $regex, $exists, regex or null inside $in, ...) is
kept whole as an OpaqueClause. It is never flattened into the conjunction:
an inclusive projection drops it and a strict projection gives up.

Literals are checked against the column type before projecting. A literal the
column cannot hold (a string for an int column, an int beyond int32 range)
never matches a row: it is removed from $in/$nin sets, and an
eq/ne/comparison carrying one is treated as unprojectable.
"""

import itertools
import logging
import math
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from bson.regex import Regex

from ..constants import BUCKET_FIELD_SUFFIX, MAX_PROJECTED_COMBINATIONS
from ..expressions.literals import coerce_literal
from ..expressions.predicates import (
    MONGO_OPERATORS,
    SET_OPERATIONS,
    BoundPredicate,
    BoundReference,
    BoundSetPredicate,
    Operation,
    Reference,
    UnboundPredicate,
)
from ..schema.record import Record
from ..schema.types import NestedField, Struct
from ..transforms.bucket import BucketBase

logger = logging.getLogger(__name__)

__all__ = [
    "OpaqueClause",
    "parse_filter",
    "project_filter",
    "bucket_field_name",
]

# MongoDB query operator -> Operation
_OPERATIONS: Dict[str, Operation] = {v: k for k, v in MONGO_OPERATORS.items()}

# Shapes a bucket transform can rewrite, per projection mode
_INCLUSIVE_OPERATIONS = frozenset(
    {Operation.IS_NULL, Operation.NOT_NULL, Operation.EQ, Operation.IN}
)
_STRICT_OPERATIONS = frozenset(
    {Operation.IS_NULL, Operation.NOT_NULL, Operation.NOT_EQ, Operation.NOT_IN}
)

# Raised by coerce_literal for literals the column cannot hold
_COERCION_ERRORS = (TypeError, ValueError)


@dataclass(frozen=True)
class OpaqueClause:
    """
    A filter clause bucket projection cannot analyse.

    term is the field the clause constrains, or None for top-level operators
    such as $or.
    """

    term: Optional[str]
    clause: Mapping[str, Any]

    def __str__(self) -> str:
        return f"opaque({dict(self.clause)!r})"


Conjunct = Union[UnboundPredicate, OpaqueClause]


def _is_nan(value: Any) -> bool:
    return isinstance(value, float) and math.isnan(value)


def _is_regex(value: Any) -> bool:
    return isinstance(value, (re.Pattern, Regex))


def _is_operator_doc(value: Any) -> bool:
    """True for {"$op": ...} documents, False for embedded documents."""
    if not isinstance(value, Mapping) or not value:
        return False
    keys = [k.startswith("$") for k in value]
    if any(keys) and not all(keys):
        raise ValueError(f"Cannot mix operators and fields in {dict(value)!r}")
    return all(keys)


def _parse_operator(field: str, operator: str, operand: Any) -> Conjunct:
    op = _OPERATIONS.get(operator)
    if op is None or _is_regex(operand):
        logger.debug(f"Keeping {operator} on '{field}' as an opaque clause")
        return OpaqueClause(field, {field: {operator: operand}})

    if op is Operation.EQ:
        if operand is None:
            return UnboundPredicate(Operation.IS_NULL, field)
        if _is_nan(operand):
            return UnboundPredicate(Operation.IS_NAN, field)
    elif op is Operation.NOT_EQ:
        if operand is None:
            return UnboundPredicate(Operation.NOT_NULL, field)
        if _is_nan(operand):
            return UnboundPredicate(Operation.NOT_NAN, field)
    elif op in (Operation.IN, Operation.NOT_IN):
        if not isinstance(operand, (list, tuple)):
            raise ValueError(f"{operator} on '{field}' requires a list, got {operand!r}")
        # null matches missing fields, regexes match by pattern
        if any(v is None or _is_regex(v) for v in operand):
            return OpaqueClause(field, {field: {operator: list(operand)}})
        return UnboundPredicate(op, field, tuple(operand))
    elif operand is None:
        return OpaqueClause(field, {field: {operator: operand}})

    return UnboundPredicate(op, field, (operand,))


def parse_filter(filter_dict: Mapping[str, Any]) -> List[Conjunct]:
    """
    Split a MongoDB filter into a conjunction of predicates.

    Args:
        filter_dict: MongoDB filter dictionary

    Returns:
        Conjuncts that must all hold: UnboundPredicates, plus an OpaqueClause
        for every clause outside the supported operators

    Raises:
        ValueError: For malformed filters ($and or $in without a list,
            operators mixed with fields)

    Examples:
        >>> [str(p) for p in parse_filter({"id": 5, "ts": {"$gte": 1, "$lt": 9}})]
        ['id eq 5', 'ts gt_eq 1', 'ts lt 9']
        >>> [str(p) for p in parse_filter({"$and": [{"id": None}]})]
        ['is_null(id)']
        >>> [str(p) for p in parse_filter({"$or": [{"a": 1}]})]
        ["opaque({'$or': [{'a': 1}]})"]
    """
    predicates: List[Conjunct] = []

    for key, value in filter_dict.items():
        if key == "$and":
            if not isinstance(value, (list, tuple)):
                raise ValueError(f"$and requires a list, got {value!r}")
            for clause in value:
                predicates.extend(parse_filter(clause))
        elif key.startswith("$"):
            logger.debug(f"Keeping top-level {key} as an opaque clause")
            predicates.append(OpaqueClause(None, {key: value}))
        elif _is_regex(value):
            predicates.append(OpaqueClause(key, {key: value}))
        elif _is_operator_doc(value):
            for operator, operand in value.items():
                predicates.append(_parse_operator(key, operator, operand))
        else:
            predicates.append(_parse_operator(key, "$eq", value))

    return predicates


def bucket_field_name(source: Union[str, Sequence[str]]) -> str:
    """Default bucket column name: "<source>_bucket" (sources joined by "_")."""
    if isinstance(source, str):
        return f"{source}{BUCKET_FIELD_SUFFIX}"
    return "_".join(source) + BUCKET_FIELD_SUFFIX


def _combine(projected: List[UnboundPredicate]) -> Optional[Dict[str, Any]]:
    if not projected:
        return None
    if len(projected) == 1:
        return projected[0].to_mongo()
    return {"$and": [p.to_mongo() for p in projected]}


def _bind_projectable(pred: UnboundPredicate, schema: Struct) -> Optional[BoundPredicate]:
    """
    Bind *pred* for projection, or return None when its literals do not fit.

    Set literals the column cannot hold are removed first; they never match a
    row, so the remaining set has the same meaning. A missing column still
    raises ValueError.
    """
    ref = Reference(pred.term).bind(schema)

    if pred.op in SET_OPERATIONS:
        usable = []
        for value in pred.literals:
            try:
                coerce_literal(ref.type, value)
            except _COERCION_ERRORS as e:
                logger.debug(f"Dropping {value!r} from '{pred}': {e}")
                continue
            usable.append(value)
        if not usable:
            return None
        pred = UnboundPredicate(pred.op, pred.term, tuple(usable))

    try:
        return pred.bind(schema)
    except _COERCION_ERRORS as e:
        logger.debug(f"Cannot project '{pred}': {e}")
        return None


def _project_column(
    predicates: List[Conjunct],
    schema: Struct,
    transform: BucketBase,
    source: str,
    bucket_field: str,
    strict: bool,
) -> Optional[Dict[str, Any]]:
    projected: List[UnboundPredicate] = []
    supported = _STRICT_OPERATIONS if strict else _INCLUSIVE_OPERATIONS

    for pred in predicates:
        if isinstance(pred, OpaqueClause) or pred.term != source:
            if strict:
                logger.info(
                    f"No strict bucket filter: '{pred}' is not a predicate on '{source}'"
                )
                return None
            continue

        result = None
        if pred.op in supported:
            bound = _bind_projectable(pred, schema)
            if bound is not None and strict:
                result = transform.project_strict(bucket_field, bound)
            elif bound is not None:
                result = transform.project(bucket_field, bound)

        if result is None:
            if strict:
                logger.info(f"No strict bucket filter: '{pred}' cannot be projected")
                return None
            continue
        projected.append(result)

    return _combine(projected)


def _project_columns(
    predicates: List[Conjunct],
    schema: Struct,
    transform: BucketBase,
    sources: List[str],
    bucket_field: str,
) -> Optional[Dict[str, Any]]:
    struct_type = schema.select(sources)
    candidates: Dict[str, List[Any]] = {}

    for pred in predicates:
        if isinstance(pred, OpaqueClause) or pred.term not in sources:
            continue
        if pred.op not in (Operation.EQ, Operation.IN, Operation.IS_NULL):
            continue

        bound = _bind_projectable(pred, schema)
        if bound is None:
            continue
        values = list(bound.literals) if pred.op is not Operation.IS_NULL else [None]

        if pred.term in candidates:
            # Several pinning conjuncts on one column: keep the common values
            values = [v for v in candidates[pred.term] if any(v == w for w in values)]
        candidates[pred.term] = values

    missing = [s for s in sources if s not in candidates]
    if missing:
        logger.info(f"No multi-column bucket filter: {missing} not pinned to values")
        return None

    combinations = math.prod(len(candidates[s]) for s in sources)
    if combinations > MAX_PROJECTED_COMBINATIONS:
        logger.warning(
            f"No multi-column bucket filter: {combinations} value combinations "
            f"exceed the limit of {MAX_PROJECTED_COMBINATIONS}"
        )
        return None

    records = [
        Record(struct_type, dict(zip(sources, combo)))
        for combo in itertools.product(*(candidates[s] for s in sources))
    ]
    ref = BoundReference(
        NestedField(field_id=0, name="_".join(sources), field_type=struct_type)
    )
    result = transform.project(bucket_field, BoundSetPredicate(Operation.IN, ref, records))
    return result.to_mongo() if result is not None else None


def project_filter(
    filter_dict: Mapping[str, Any],
    schema: Struct,
    transform: BucketBase,
    source: Union[str, Sequence[str]],
    bucket_field: Optional[str] = None,
    strict: bool = False,
) -> Optional[Dict[str, Any]]:
    """
    Rewrite a MongoDB filter as a filter over a bucket column.

    Args:
        filter_dict: MongoDB filter over source columns
        schema: Struct describing the source columns
        transform: Bucket transform partitioning the data
        source: Bucketed column, or a sequence of columns for a
            MultiColumnBucket
        bucket_field: Bucket column name (default: bucket_field_name(source))
        strict: Produce a strict (subset) filter instead of an inclusive one

    Returns:
        MongoDB filter over the bucket column, or None when the filter cannot
        be used to prune buckets

    Example:
        >>> project_filter({"id": 34}, schema, get_bucket(16), "id")
        {'id_bucket': {'$eq': 3}}
    """
    predicates = parse_filter(filter_dict)
    field = bucket_field or bucket_field_name(source)

    if isinstance(source, str):
        return _project_column(predicates, schema, transform, source, field, strict)

    if strict:
        logger.debug(f"No strict projection through multi-column {transform}")
        return None
    return _project_columns(predicates, schema, transform, list(source), field)
