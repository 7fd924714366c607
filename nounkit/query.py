"""
Filter evaluation for in-process collections.

A filter maps attribute names to either a literal (exact equality) or
an operator object:

    {"stage": "Lead"}
    {"value": {"$gte": 100, "$lte": 500}}
    {"stage": {"$nin": ["Lost", "Churned"]}}
    {"email": {"$regex": "@acme\\.com$", "$options": "i"}}
    {"deletedAt": {"$exists": False}}

Invariants:
    - Operators on one attribute and attributes in one filter are ANDed
    - An empty or missing filter matches every instance
    - Comparisons against a missing attribute or an incomparable value
      are False, never an exception
    - The evaluator knows nothing about entity types

Example:
    >>> matches({"value": 250}, {"value": {"$gte": 100, "$lte": 500}})
    True
"""

from __future__ import annotations

import re
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from .errors import QueryError

_MISSING = object()

# Modifiers read by other operators rather than evaluated on their own
MODIFIERS = frozenset({"$options"})


def _compare(op: Callable[[Any, Any], bool]) -> Callable[[Any, Any, Mapping[str, Any]], bool]:
    def check(value: Any, operand: Any, _condition: Mapping[str, Any]) -> bool:
        if value is _MISSING or value is None or operand is None:
            return False
        try:
            return bool(op(value, operand))
        except TypeError:
            return False

    return check


def _eq(value: Any, operand: Any, _condition: Mapping[str, Any]) -> bool:
    if value is _MISSING:
        return operand is None
    return value == operand


def _ne(value: Any, operand: Any, condition: Mapping[str, Any]) -> bool:
    return not _eq(value, operand, condition)


def _in(value: Any, operand: Any, _condition: Mapping[str, Any]) -> bool:
    if value is _MISSING:
        return False
    if isinstance(value, list):
        return any(item in operand for item in value)
    return value in operand


def _nin(value: Any, operand: Any, condition: Mapping[str, Any]) -> bool:
    return not _in(value, operand, condition)


def _regex(value: Any, operand: Any, condition: Mapping[str, Any]) -> bool:
    if not isinstance(value, str):
        return False
    if isinstance(operand, re.Pattern):
        pattern = operand
    else:
        flags = re.IGNORECASE if "i" in str(condition.get("$options", "")) else 0
        pattern = re.compile(str(operand), flags)
    return pattern.search(value) is not None


def _exists(value: Any, operand: Any, _condition: Mapping[str, Any]) -> bool:
    return (value is not _MISSING) == bool(operand)


OPERATORS: Dict[str, Callable[[Any, Any, Mapping[str, Any]], bool]] = {
    "$eq": _eq,
    "$ne": _ne,
    "$gt": _compare(lambda a, b: a > b),
    "$gte": _compare(lambda a, b: a >= b),
    "$lt": _compare(lambda a, b: a < b),
    "$lte": _compare(lambda a, b: a <= b),
    "$in": _in,
    "$nin": _nin,
    "$regex": _regex,
    "$exists": _exists,
}


def is_operator_object(value: Any) -> bool:
    """Whether a filter value is an operator object rather than a literal."""
    return isinstance(value, Mapping) and bool(value) and all(
        isinstance(k, str) and k.startswith("$") for k in value
    )


def matches(instance: Mapping[str, Any], where: Optional[Mapping[str, Any]] = None) -> bool:
    """Evaluate a filter against one attribute map.

    Args:
        instance: Attribute map (entity instance or any dict)
        where: Filter; None or {} matches everything

    Returns:
        True when every condition holds

    Raises:
        QueryError: If an operator object uses an unknown operator
    """
    if not where:
        return True
    for key, condition in where.items():
        value = instance.get(key, _MISSING)
        if is_operator_object(condition):
            for op, operand in condition.items():
                if op in MODIFIERS:
                    continue
                check = OPERATORS.get(op)
                if check is None:
                    raise QueryError(f"Unsupported filter operator '{op}'", operator=op)
                if not check(value, operand, condition):
                    return False
        elif not _eq(value, condition, where):
            return False
    return True


def filter_instances(
    instances: Iterable[Mapping[str, Any]],
    where: Optional[Mapping[str, Any]] = None,
) -> List[Mapping[str, Any]]:
    """Return the instances matching a filter, preserving input order."""
    return [instance for instance in instances if matches(instance, where)]
