"""
Field tree models for multi-step form wizards.

A scenario is a list of steps; each step owns a recursive tree of fields.
Leaf fields (input, textarea, select, checkbox) own one value under their id.
Grid and group layouts are transparent: their children live in the parent
scope. A repeatable owns an array under its id and opens a new scope for
every array item.
"""

import logging
from typing import Annotated, Any, Callable, Dict, Iterator, List, Literal, Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StrictBool,
    StrictStr,
    ValidationError,
    field_validator,
    model_validator,
)

logger = logging.getLogger(__name__)

STEP_META_KEY = "_step"


class SchemaConfigError(ValueError):
    """Raised when a traversal meets a field tree that should never have passed validation."""


class _SchemaModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)


# --- Conditions ---

ScalarValue = Union[StrictBool, StrictStr]
ExpectedValue = Union[ScalarValue, List[ScalarValue]]


class FieldCondition(_SchemaModel):
    field: str
    is_: Optional[ExpectedValue] = Field(default=None, alias="is")
    is_not: Optional[ExpectedValue] = Field(default=None, alias="isNot")
    is_empty: Optional[bool] = Field(default=None, alias="isEmpty")
    is_not_empty: Optional[bool] = Field(default=None, alias="isNotEmpty")


class AndCondition(_SchemaModel):
    and_: List["Condition"] = Field(..., alias="and")


class OrCondition(_SchemaModel):
    or_: List["Condition"] = Field(..., alias="or")


class PredicateRef(_SchemaModel):
    """Reference to a predicate registered with `conditions.register_predicate`."""

    predicate: str = Field(..., min_length=1)


ConditionFunction = Callable[[Dict[str, Any]], bool]
Condition = Union[AndCondition, OrCondition, FieldCondition, PredicateRef, ConditionFunction]

AndCondition.model_rebuild()
OrCondition.model_rebuild()


# --- Leaf fields ---


class SelectOption(_SchemaModel):
    value: str
    label: str


class _LeafField(_SchemaModel):
    id: str = Field(..., min_length=1)
    label: str
    description: str = ""
    placeholder: Optional[str] = None
    required: bool = False
    when: Optional[Condition] = None

    @field_validator("when", mode="wrap")
    @classmethod
    def _keep_unrecognized_condition(cls, value: Any, handler: Any) -> Any:
        try:
            return handler(value)
        except ValidationError:
            # Evaluated fail-open later; the field stays visible.
            logger.warning("Unrecognized condition %r; the field will always be visible", value)
            return value


class InputField(_LeafField):
    type: Literal["input"] = "input"
    input_type: Literal["text", "date", "url"] = Field(default="text", alias="inputType")
    suggestions: List[str] = Field(default_factory=list)
    default: Optional[str] = None


class TextareaField(_LeafField):
    type: Literal["textarea"] = "textarea"
    rows: Optional[int] = Field(default=None, ge=1)
    default: Optional[str] = None


class SelectField(_LeafField):
    type: Literal["select"] = "select"
    options: List[SelectOption] = Field(default_factory=list)
    default: Optional[str] = None

    @model_validator(mode="after")
    def validate_default_option(self) -> "SelectField":
        if self.default is not None and self.default not in {option.value for option in self.options}:
            raise ValueError(f"Select field '{self.id}' default {self.default!r} is not one of its options")
        return self


class CheckboxField(_LeafField):
    type: Literal["checkbox"] = "checkbox"
    default: Optional[bool] = None


LEAF_FIELD_TYPES = (InputField, TextareaField, SelectField, CheckboxField)

FormField = Annotated[
    Union[InputField, TextareaField, SelectField, CheckboxField],
    Field(discriminator="type"),
]


# --- Layout fields ---


class GridLayout(_SchemaModel):
    type: Literal["grid"] = "grid"
    columns: int = Field(default=1, ge=1)
    fields: List["FieldSchema"] = Field(default_factory=list)


class GroupLayout(_SchemaModel):
    type: Literal["group"] = "group"
    fields: List["FieldSchema"] = Field(default_factory=list)


class RepeatableLayout(_SchemaModel):
    type: Literal["repeatable"] = "repeatable"
    id: str = Field(..., min_length=1)
    label: str
    min_count: Optional[int] = Field(default=None, ge=0, alias="minCount")
    default_count: Optional[int] = Field(default=None, ge=0, alias="defaultCount")
    field: "RepeatableItemSchema"

    @model_validator(mode="after")
    def validate_counts(self) -> "RepeatableLayout":
        if self.min_count is not None and self.default_count is not None and self.default_count < self.min_count:
            raise ValueError(
                f"Repeatable '{self.id}' defaultCount ({self.default_count}) is below minCount ({self.min_count})"
            )
        return self

    @property
    def minimum(self) -> int:
        return self.min_count or 0

    def initial_count(self) -> int:
        if self.default_count is not None:
            count = self.default_count
        else:
            count = self.minimum
        return max(count, self.minimum)


LAYOUT_FIELD_TYPES = (GridLayout, GroupLayout, RepeatableLayout)

FieldSchema = Annotated[
    Union[InputField, TextareaField, SelectField, CheckboxField, GridLayout, GroupLayout, RepeatableLayout],
    Field(discriminator="type"),
]

RepeatableItemSchema = Annotated[
    Union[InputField, TextareaField, SelectField, CheckboxField, GroupLayout],
    Field(discriminator="type"),
]

GridLayout.model_rebuild()
GroupLayout.model_rebuild()
RepeatableLayout.model_rebuild()


def is_form_field(field: Any) -> bool:
    return isinstance(field, LEAF_FIELD_TYPES)


def is_layout_field(field: Any) -> bool:
    return isinstance(field, LAYOUT_FIELD_TYPES)


def unknown_field_error(field: Any) -> SchemaConfigError:
    kind = getattr(field, "type", None)
    if kind is None and isinstance(field, dict):
        kind = field.get("type")
    return SchemaConfigError(f"Unknown field type: {kind or type(field).__name__!r}")


def repeatable_scope_error(repeatable: RepeatableLayout) -> SchemaConfigError:
    inner = getattr(repeatable.field, "type", type(repeatable.field).__name__)
    return SchemaConfigError(
        f"Repeatable '{repeatable.id}' must wrap a form field or a group, not {inner!r}"
    )


def iter_scope_fields(fields: List[Any]) -> Iterator[Any]:
    """Yield the fields that own a key in this scope (leaves and repeatables), looking through grids and groups."""
    for field in fields:
        if isinstance(field, (GridLayout, GroupLayout)):
            yield from iter_scope_fields(field.fields)
        elif isinstance(field, RepeatableLayout) or is_form_field(field):
            yield field
        else:
            raise unknown_field_error(field)


def collect_scope_ids(fields: List[Any]) -> List[str]:
    return [field.id for field in iter_scope_fields(fields)]


def repeatable_item_fields(repeatable: RepeatableLayout) -> List[Any]:
    """Fields forming the scope of a single repeatable item."""
    inner = repeatable.field
    if isinstance(inner, GroupLayout):
        return list(inner.fields)
    if is_form_field(inner):
        return [inner]
    raise repeatable_scope_error(repeatable)


def _check_unique_ids(fields: List[Any], scope: str) -> None:
    seen: set[str] = set()
    for field in iter_scope_fields(fields):
        if field.id in seen:
            raise ValueError(f"Duplicate field id '{field.id}' in {scope}")
        seen.add(field.id)
        if isinstance(field, RepeatableLayout):
            _check_unique_ids(repeatable_item_fields(field), f"repeatable '{field.id}'")


# --- Steps and scenarios ---


class Step(_SchemaModel):
    slug: str
    title: str
    description: str = ""
    name: str = Field(..., min_length=1)
    fields: List[FieldSchema] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_scope_ids(self) -> "Step":
        _check_unique_ids(self.fields, f"step '{self.name}'")
        if STEP_META_KEY in collect_scope_ids(self.fields):
            raise ValueError(f"Field id '{STEP_META_KEY}' is reserved (step '{self.name}')")
        return self


PromptFunction = Callable[..., str]


class Scenario(_SchemaModel):
    id: str = Field(..., min_length=1)
    name: str
    steps: List[Step] = Field(default_factory=list)
    prompt: Optional[Union[str, PromptFunction]] = None

    @model_validator(mode="after")
    def validate_step_names(self) -> "Scenario":
        names: set[str] = set()
        for step in self.steps:
            if step.name in names:
                raise ValueError(f"Duplicate step name '{step.name}' in scenario '{self.id}'")
            names.add(step.name)
        return self

    def get_step(self, name: str) -> Step:
        for step in self.steps:
            if step.name == name:
                return step
        raise KeyError(f"Step {name} not found")


class FormConfig(_SchemaModel):
    scenarios: List[Scenario] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_scenario_ids(self) -> "FormConfig":
        ids: set[str] = set()
        for scenario in self.scenarios:
            if scenario.id in ids:
                raise ValueError(f"Duplicate scenario id '{scenario.id}'")
            ids.add(scenario.id)
        return self

    def get_scenario(self, scenario_id: str) -> Scenario:
        for scenario in self.scenarios:
            if scenario.id == scenario_id:
                return scenario
        raise KeyError(f"Scenario {scenario_id} not found")
