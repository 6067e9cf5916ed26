"""
Visibility condition evaluation.

Conditions are evaluated against the nearest enclosing scope only: the step's
values, or one repeatable item. Anything that cannot be interpreted fails open,
so the field stays visible rather than silently dropping data.
"""

import logging
from typing import Any, Dict, Mapping, Optional

from pydantic import TypeAdapter, ValidationError

from formwizard.models import (
    AndCondition,
    Condition,
    ConditionFunction,
    FieldCondition,
    OrCondition,
    PredicateRef,
)

logger = logging.getLogger(__name__)

_PREDICATES: Dict[str, ConditionFunction] = {}
_CONDITION_ADAPTER: TypeAdapter = TypeAdapter(Condition)


def register_predicate(name: str, predicate: ConditionFunction) -> None:
    _PREDICATES[name] = predicate


def get_predicate(name: str) -> Optional[ConditionFunction]:
    return _PREDICATES.get(name)


def clear_predicates() -> None:
    _PREDICATES.clear()


def _same_value(actual: Any, expected: Any) -> bool:
    # True == 1 in Python; a checkbox value must never match a number.
    if isinstance(actual, bool) != isinstance(expected, bool):
        return False
    return actual == expected


def _matches(actual: Any, expected: Any) -> bool:
    if isinstance(expected, (list, tuple)):
        return any(_same_value(actual, item) for item in expected)
    return _same_value(actual, expected)


def is_empty_value(value: Any) -> bool:
    return value is None or value is False or (isinstance(value, str) and value == "")


def _evaluate_field_condition(condition: FieldCondition, values: Mapping[str, Any]) -> bool:
    actual = values.get(condition.field)
    # Operators apply when their key is given, whatever its value.
    given = condition.model_fields_set

    if "is_" in given:
        return _matches(actual, condition.is_)
    if "is_not" in given:
        return not _matches(actual, condition.is_not)
    if "is_empty" in given:
        return is_empty_value(actual)
    if "is_not_empty" in given:
        return not is_empty_value(actual)

    logger.warning("Condition on %r has no operator; treating it as satisfied", condition.field)
    return True


def evaluate_condition(condition: Any, scope_values: Optional[Mapping[str, Any]]) -> bool:
    values: Mapping[str, Any] = scope_values if isinstance(scope_values, Mapping) else {}

    if isinstance(condition, FieldCondition):
        return _evaluate_field_condition(condition, values)
    if isinstance(condition, AndCondition):
        return all(evaluate_condition(item, values) for item in condition.and_)
    if isinstance(condition, OrCondition):
        return any(evaluate_condition(item, values) for item in condition.or_)
    if isinstance(condition, PredicateRef):
        predicate = _PREDICATES.get(condition.predicate)
        if predicate is None:
            logger.warning("Predicate %r is not registered; treating it as satisfied", condition.predicate)
            return True
        return bool(predicate(dict(values)))
    if isinstance(condition, Mapping):
        try:
            parsed = _CONDITION_ADAPTER.validate_python(dict(condition))
        except ValidationError:
            logger.warning("Malformed condition %r; treating it as satisfied", condition)
            return True
        return evaluate_condition(parsed, values)
    if callable(condition):
        return bool(condition(dict(values)))

    logger.warning("Unrecognized condition %r; treating it as satisfied", condition)
    return True


def is_field_visible(field: Any, scope_values: Optional[Mapping[str, Any]]) -> bool:
    """Check a leaf field's `when` condition; fields without one are always visible."""
    condition = getattr(field, "when", None)
    if condition is None:
        return True
    return evaluate_condition(condition, scope_values)
