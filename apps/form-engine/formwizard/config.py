import json
import logging
import os
from pathlib import Path
from typing import Any, Iterator, List, Optional, Sequence, Tuple

from dotenv import load_dotenv
from pydantic import ValidationError

from formwizard.models import (
    AndCondition,
    FieldCondition,
    FormConfig,
    OrCondition,
    RepeatableLayout,
    collect_scope_ids,
    iter_scope_fields,
    repeatable_item_fields,
)

load_dotenv()

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "formwizard.config.json"


class ConfigLoadError(ValueError):
    pass


def get_config_path() -> str:
    return os.getenv("FORMWIZARD_CONFIG", DEFAULT_CONFIG_PATH)


def _strict_conditions() -> bool:
    return os.getenv("FORMWIZARD_STRICT_CONDITIONS", "false").lower() == "true"


def _condition_references(condition: Any) -> Iterator[str]:
    if isinstance(condition, FieldCondition):
        yield condition.field
    elif isinstance(condition, AndCondition):
        for item in condition.and_:
            yield from _condition_references(item)
    elif isinstance(condition, OrCondition):
        for item in condition.or_:
            yield from _condition_references(item)


def find_dangling_references(fields: Sequence[Any]) -> List[Tuple[str, str]]:
    """Return (field id, referenced id) pairs whose condition names an id missing from the field's scope."""
    scope_ids = set(collect_scope_ids(list(fields)))
    dangling: List[Tuple[str, str]] = []
    for field in iter_scope_fields(list(fields)):
        if isinstance(field, RepeatableLayout):
            dangling.extend(find_dangling_references(repeatable_item_fields(field)))
            continue
        for reference in _condition_references(field.when):
            if reference not in scope_ids:
                dangling.append((field.id, reference))
    return dangling


def _check_condition_references(config: FormConfig) -> None:
    strict = _strict_conditions()
    for scenario in config.scenarios:
        for step in scenario.steps:
            for field_id, reference in find_dangling_references(step.fields):
                args = (field_id, step.name, scenario.id, reference)
                if strict:
                    logger.error("Field '%s' in step '%s' of scenario '%s' has a condition on unknown field '%s'", *args)
                    raise ConfigLoadError(f"dangling_condition_reference: {field_id} -> {reference}")
                logger.warning("Field '%s' in step '%s' of scenario '%s' has a condition on unknown field '%s'", *args)


def parse_config(data: Any) -> FormConfig:
    try:
        config = FormConfig.model_validate(data)
    except ValidationError as exc:
        logger.error("Invalid form configuration: %s", exc)
        raise ConfigLoadError("invalid_form_config") from exc

    _check_condition_references(config)
    logger.info(
        "Loaded form configuration with %d scenarios (%d steps)",
        len(config.scenarios),
        sum(len(scenario.steps) for scenario in config.scenarios),
    )
    return config


def load_config(path: Optional[str] = None) -> FormConfig:
    config_path = Path(path or get_config_path())
    try:
        raw = config_path.read_text(encoding="utf-8")
    except OSError as exc:
        logger.exception("Unable to read form configuration from %s", config_path)
        raise ConfigLoadError(f"Unable to read form configuration: {config_path}") from exc

    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        logger.error("Form configuration %s is not valid JSON: %s", config_path, exc)
        raise ConfigLoadError(f"Form configuration is not valid JSON: {config_path}") from exc

    return parse_config(data)
