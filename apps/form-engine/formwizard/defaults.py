from typing import Any, Dict, List, Sequence

from formwizard.models import (
    CheckboxField,
    GridLayout,
    GroupLayout,
    RepeatableLayout,
    Step,
    is_form_field,
    repeatable_item_fields,
    unknown_field_error,
)


def get_field_default_value(field: Any) -> Any:
    if field.default is not None:
        return field.default
    return False if isinstance(field, CheckboxField) else ""


def build_field_defaults(fields: Sequence[Any]) -> Dict[str, Any]:
    """Initial values for a scope; repeatables get defaultCount (or minCount) fresh items."""
    defaults: Dict[str, Any] = {}
    for field in fields:
        if isinstance(field, (GridLayout, GroupLayout)):
            defaults.update(build_field_defaults(field.fields))
        elif isinstance(field, RepeatableLayout):
            item_fields = repeatable_item_fields(field)
            defaults[field.id] = [build_field_defaults(item_fields) for _ in range(field.initial_count())]
        elif is_form_field(field):
            defaults[field.id] = get_field_default_value(field)
        else:
            raise unknown_field_error(field)
    return defaults


def build_form_default_values(steps: List[Step]) -> Dict[str, Dict[str, Any]]:
    return {step.name: build_field_defaults(step.fields) for step in steps}
