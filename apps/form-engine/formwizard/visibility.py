import logging
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence

from formwizard.conditions import is_field_visible
from formwizard.models import (
    GridLayout,
    GroupLayout,
    RepeatableLayout,
    Scenario,
    Step,
    is_form_field,
    iter_scope_fields,
    repeatable_item_fields,
    unknown_field_error,
)

logger = logging.getLogger(__name__)


def get_visible_field_ids(fields: Sequence[Any], scope_values: Optional[Mapping[str, Any]]) -> List[str]:
    """
    Keys of the scope that are currently visible.

    Repeatable ids are always included; visibility inside their items is a
    per-item question answered against each item's own values.
    """
    result: List[str] = []
    for field in fields:
        if isinstance(field, RepeatableLayout):
            result.append(field.id)
        elif isinstance(field, (GridLayout, GroupLayout)):
            result.extend(get_visible_field_ids(field.fields, scope_values))
        elif is_form_field(field):
            if is_field_visible(field, scope_values):
                result.append(field.id)
        else:
            raise unknown_field_error(field)
    return result


def iter_required_fields(fields: Sequence[Any], scope_values: Optional[Mapping[str, Any]]) -> Iterator[Any]:
    for field in fields:
        if isinstance(field, RepeatableLayout):
            # validated by status.is_repeatable_valid
            continue
        if isinstance(field, (GridLayout, GroupLayout)):
            yield from iter_required_fields(field.fields, scope_values)
        elif is_form_field(field):
            if field.required and is_field_visible(field, scope_values):
                yield field
        else:
            raise unknown_field_error(field)


def extract_required_field_ids(fields: Sequence[Any], scope_values: Optional[Mapping[str, Any]]) -> List[str]:
    return [field.id for field in iter_required_fields(fields, scope_values)]


def _filter_scope(fields: Sequence[Any], values: Mapping[str, Any]) -> Dict[str, Any]:
    repeatables = {
        field.id: field for field in iter_scope_fields(list(fields)) if isinstance(field, RepeatableLayout)
    }
    filtered: Dict[str, Any] = {}
    for field_id in get_visible_field_ids(fields, values):
        if field_id not in values:
            continue
        value = values[field_id]
        repeatable = repeatables.get(field_id)
        if repeatable is not None and isinstance(value, list):
            item_fields = repeatable_item_fields(repeatable)
            value = [_filter_scope(item_fields, item) if isinstance(item, Mapping) else item for item in value]
        filtered[field_id] = value
    return filtered


def filter_visible_form_data(step: Step, step_values: Any) -> Optional[Dict[str, Any]]:
    """Drop hidden fields (and unknown keys) from a step's values, recursing into repeatable items."""
    if not isinstance(step_values, Mapping):
        return None
    return _filter_scope(step.fields, step_values)


def filter_visible_scenario_data(scenario: Scenario, form_data: Any) -> Dict[str, Any]:
    if not isinstance(form_data, Mapping):
        return {}

    filtered: Dict[str, Any] = {}
    for step in scenario.steps:
        if step.name not in form_data:
            continue
        step_data = filter_visible_form_data(step, form_data[step.name])
        if step_data is not None:
            filtered[step.name] = step_data

    dropped = [key for key in form_data if key not in filtered]
    if dropped:
        logger.info("Dropped %d unknown or empty steps from scenario %s: %s", len(dropped), scenario.id, dropped)
    return filtered
