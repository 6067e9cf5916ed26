import logging
from typing import Any, Dict, Literal, Mapping, Optional, Sequence

from formwizard.models import (
    CheckboxField,
    GroupLayout,
    RepeatableLayout,
    Scenario,
    Step,
    is_form_field,
    iter_scope_fields,
    repeatable_scope_error,
)
from formwizard.visibility import iter_required_fields

logger = logging.getLogger(__name__)

StepStatus = Literal["success", "error"]


def is_field_filled(value: Any) -> bool:
    return value is not None and not (isinstance(value, str) and value == "")


def _is_leaf_filled(field: Any, value: Any) -> bool:
    # A required checkbox has to be checked.
    if isinstance(field, CheckboxField):
        return value is True
    return is_field_filled(value)


def _as_scope(values: Any) -> Mapping[str, Any]:
    return values if isinstance(values, Mapping) else {}


def _is_scope_valid(fields: Sequence[Any], values: Mapping[str, Any]) -> bool:
    for field in iter_required_fields(fields, values):
        if not _is_leaf_filled(field, values.get(field.id)):
            return False
    for field in iter_scope_fields(list(fields)):
        if isinstance(field, RepeatableLayout) and not is_repeatable_valid(field, values.get(field.id)):
            return False
    return True


def is_repeatable_valid(repeatable: RepeatableLayout, value: Any) -> bool:
    """
    Check a repeatable's array against minCount and each item's own rules.

    Group items are validated like a scope: visible required fields must be
    filled and nested repeatables are validated recursively. Single-field
    items only need the field filled when it is required.
    """
    if not isinstance(value, list):
        return repeatable.minimum == 0
    if len(value) < repeatable.minimum:
        return False

    inner = repeatable.field
    if isinstance(inner, GroupLayout):
        return all(_is_scope_valid(inner.fields, _as_scope(item)) for item in value)
    if is_form_field(inner):
        if not inner.required:
            return True
        return all(_is_leaf_filled(inner, _as_scope(item).get(inner.id)) for item in value)
    raise repeatable_scope_error(repeatable)


def resolve_status(fields: Sequence[Any], values: Any) -> StepStatus:
    if not isinstance(values, Mapping):
        return "error"
    return "success" if _is_scope_valid(fields, values) else "error"


def get_step_status(step: Step, step_values: Optional[Any]) -> StepStatus:
    status = resolve_status(step.fields, step_values)
    logger.debug("Step %s resolved to %s", step.name, status)
    return status


def get_scenario_statuses(scenario: Scenario, form_data: Any) -> Dict[str, StepStatus]:
    data = _as_scope(form_data)
    return {step.name: get_step_status(step, data.get(step.name)) for step in scenario.steps}
