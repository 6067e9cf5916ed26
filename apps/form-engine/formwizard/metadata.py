from typing import Any, Dict, List, Optional, Sequence

from formwizard.models import (
    STEP_META_KEY,
    GridLayout,
    GroupLayout,
    RepeatableLayout,
    Step,
    is_form_field,
    repeatable_item_fields,
    unknown_field_error,
)


def _leaf_meta(field: Any) -> Dict[str, str]:
    return {"label": field.label, "description": field.description}


def build_fields_meta(fields: Sequence[Any]) -> Optional[Dict[str, Any]]:
    """
    Label/description projection shaped like the value tree.

    Grids and groups merge into the parent; a repeatable maps to the metadata
    of one item (not a list). Returns None when the scope has no fields.
    """
    result: Dict[str, Any] = {}
    for field in fields:
        if isinstance(field, (GridLayout, GroupLayout)):
            result.update(build_fields_meta(field.fields) or {})
        elif isinstance(field, RepeatableLayout):
            item_meta = build_fields_meta(repeatable_item_fields(field))
            if item_meta is not None:
                result[field.id] = item_meta
        elif is_form_field(field):
            result[field.id] = _leaf_meta(field)
        else:
            raise unknown_field_error(field)
    return result or None


def build_step_meta(step: Step) -> Dict[str, Any]:
    context: Dict[str, Any] = {STEP_META_KEY: {"title": step.title, "description": step.description}}
    context.update(build_fields_meta(step.fields) or {})
    return context


def build_ai_context(steps: List[Step]) -> Dict[str, Dict[str, Any]]:
    return {step.name: build_step_meta(step) for step in steps}
