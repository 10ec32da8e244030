"""FilterAlgebra: combining access decisions and evaluating predicates.

Predicates use a Prisma-style where language:

    {"status": "published"}                      equality shorthand
    {"status": {"equals": "published"}}
    {"views": {"gte": 10, "lt": 100}}
    {"title": {"contains": "python"}}
    {"AND": [...]}, {"OR": [...]}, {"NOT": {...}}

merge() has set semantics: Deny dominates, Allow is the identity, and
predicate terms are flattened, deduplicated and ordered canonically so
the result does not depend on input order or grouping.
"""

import json
from collections.abc import Iterable, Mapping
from typing import Any

from datagate.access.types import AccessDecision
from datagate.errors import FilterError

OPERATORS = frozenset(
    {
        "equals",
        "not",
        "in",
        "notIn",
        "lt",
        "lte",
        "gt",
        "gte",
        "contains",
        "startsWith",
        "endsWith",
    }
)
COMBINATORS = frozenset({"AND", "OR", "NOT"})


def _canonical(predicate: dict[str, Any]) -> str:
    return json.dumps(predicate, sort_keys=True, default=str)


def _terms(predicate: dict[str, Any]) -> list[dict[str, Any]]:
    """Split a predicate into its top-level conjuncts."""
    if set(predicate) == {"AND"} and isinstance(predicate["AND"], list):
        terms: list[dict[str, Any]] = []
        for term in predicate["AND"]:
            terms.extend(_terms(term))
        return terms
    return [predicate]


def conjoin(*predicates: dict[str, Any] | None) -> dict[str, Any]:
    """AND together predicates, dropping empty ones.

    Returns {} (match everything) when nothing is left.
    """
    terms: dict[str, dict[str, Any]] = {}
    for predicate in predicates:
        if not predicate:
            continue
        for term in _terms(predicate):
            if term:
                terms.setdefault(_canonical(term), term)

    if not terms:
        return {}
    ordered = [terms[key] for key in sorted(terms)]
    if len(ordered) == 1:
        return ordered[0]
    return {"AND": ordered}


def merge(decisions: Iterable[AccessDecision]) -> AccessDecision:
    """Combine decisions into one.

    - any Deny -> Deny
    - only Allow (or nothing) -> Allow
    - otherwise -> Predicate(AND of the distinct predicate terms)
    """
    predicates: list[dict[str, Any]] = []
    for decision in decisions:
        if decision.is_deny:
            return AccessDecision.deny()
        if decision.is_predicate:
            predicates.append(decision.predicate)

    combined = conjoin(*predicates)
    if not combined:
        return AccessDecision.allow()
    return AccessDecision.where(combined)


def merge_filters(
    user_filter: dict[str, Any] | None, decision: AccessDecision
) -> dict[str, Any] | None:
    """Scope a caller-supplied filter by an access decision.

    Returns None when no row can match (Deny), {} when unrestricted.
    """
    if decision.is_deny:
        return None
    if decision.is_allow:
        return conjoin(user_filter)
    return conjoin(decision.predicate, user_filter)


# =============================================================================
# In-memory evaluation
# =============================================================================


def matches(row: Mapping[str, Any], predicate: dict[str, Any] | None) -> bool:
    """Evaluate a predicate against one row.

    None (the Deny filter) matches nothing; {} matches everything.

    Raises:
        FilterError: For unknown operators or malformed combinators
    """
    if predicate is None:
        return False
    if not isinstance(predicate, Mapping):
        raise FilterError(f"Filter must be a mapping, got {type(predicate).__name__}")

    for key, condition in predicate.items():
        if key == "AND":
            if not all(matches(row, term) for term in _as_list(key, condition)):
                return False
        elif key == "OR":
            if not any(matches(row, term) for term in _as_list(key, condition)):
                return False
        elif key == "NOT":
            if any(matches(row, term) for term in _as_list(key, condition)):
                return False
        elif not _matches_field(row.get(key), condition):
            return False
    return True


def _as_list(key: str, condition: Any) -> list[dict[str, Any]]:
    if isinstance(condition, Mapping):
        return [condition]
    if isinstance(condition, list):
        return condition
    raise FilterError(f"{key} expects a filter or a list of filters")


def is_operator_map(condition: Any) -> bool:
    """True for {"equals": ..., "gt": ...} style conditions."""
    return (
        isinstance(condition, Mapping)
        and len(condition) > 0
        and all(key in OPERATORS for key in condition)
    )


def _matches_field(value: Any, condition: Any) -> bool:
    if not is_operator_map(condition):
        if isinstance(condition, Mapping) and any(k in OPERATORS for k in condition):
            unknown = [k for k in condition if k not in OPERATORS]
            raise FilterError(f"Unknown filter operator(s): {', '.join(unknown)}")
        return value == condition

    for op, operand in condition.items():
        if not _apply(op, value, operand):
            return False
    return True


def _apply(op: str, value: Any, operand: Any) -> bool:
    if op == "equals":
        return value == operand
    if op == "not":
        if isinstance(operand, Mapping):
            return not _matches_field(value, operand)
        return value != operand
    if op == "in":
        return value in (operand or [])
    if op == "notIn":
        return value not in (operand or [])
    if op in ("contains", "startsWith", "endsWith"):
        if not isinstance(value, str) or not isinstance(operand, str):
            return False
        if op == "contains":
            return operand in value
        if op == "startsWith":
            return value.startswith(operand)
        return value.endswith(operand)

    # Ordering comparisons: NULL never compares
    if value is None or operand is None:
        return False
    try:
        if op == "lt":
            return value < operand
        if op == "lte":
            return value <= operand
        if op == "gt":
            return value > operand
        return value >= operand
    except TypeError:
        return False
