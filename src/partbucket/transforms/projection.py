"""Helpers shared by transform projections."""

import logging
from typing import Any, Callable, Optional

from ..expressions.predicates import (
    BoundPredicate,
    BoundSetPredicate,
    UnboundPredicate,
)

logger = logging.getLogger(__name__)


def project_transform_predicate(
    transform: Any, name: str, pred: BoundPredicate
) -> Optional[UnboundPredicate]:
    """
    Project a predicate whose term is already a transform output.

    When the predicate was written against the same transform (for example
    bucket[16](id) == 3 projected through bucket[16]), its literals are already
    partition values and the predicate is re-targeted at *name* unchanged.
    Any other transform cannot be projected.
    """
    if pred.term.transform == transform:
        return UnboundPredicate(pred.op, name, pred.literals)

    logger.debug(
        f"Cannot project {pred} through {transform}: "
        f"term uses a different transform ({pred.term.transform})"
    )
    return None


def transform_set(
    name: str, pred: BoundSetPredicate, func: Callable[[Any], Any]
) -> UnboundPredicate:
    """
    Apply *func* to every literal of a set predicate.

    Results are de-duplicated and sorted so equal inputs always render the
    same filter.
    """
    values = sorted({func(v) for v in pred.literals})
    return UnboundPredicate(pred.op, name, tuple(values))
