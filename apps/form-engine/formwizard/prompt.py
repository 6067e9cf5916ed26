import json
import logging
import re
from typing import Any, Dict

from formwizard.metadata import build_ai_context
from formwizard.models import Scenario
from formwizard.visibility import filter_visible_scenario_data

logger = logging.getLogger(__name__)

_PLACEHOLDER_RE = re.compile(r"\{(form_data|ai_context)\}")

DEFAULT_PROMPT_TEMPLATE = (
    "You are writing a document from the answers a user gave in a multi-step form.\n"
    "form_data holds the answers keyed by step name, then by field id. Arrays are repeated entries.\n"
    "ai_context mirrors that shape and gives the label and description of every key; "
    "_step holds the title and description of each step.\n"
    "Guidelines:\n"
    "- Use only the information present in form_data; do not invent values.\n"
    "- Skip empty answers instead of mentioning them.\n"
    "- Return the document only, in Markdown.\n"
    "\n"
    "form_data:\n"
    "{form_data}\n"
    "\n"
    "ai_context:\n"
    "{ai_context}\n"
)


def _dump(payload: Any) -> str:
    return json.dumps(payload, indent=2, ensure_ascii=False, default=str)


def build_prompt(scenario: Scenario, form_data: Dict[str, Any]) -> str:
    """Render the scenario prompt from visible form data and the scenario's AI context."""
    visible_data = filter_visible_scenario_data(scenario, form_data)
    ai_context = build_ai_context(scenario.steps)

    if callable(scenario.prompt):
        prompt = scenario.prompt(form_data=visible_data, ai_context=ai_context)
    else:
        template = scenario.prompt or DEFAULT_PROMPT_TEMPLATE
        payloads = {"form_data": _dump(visible_data), "ai_context": _dump(ai_context)}
        prompt = _PLACEHOLDER_RE.sub(lambda match: payloads[match.group(1)], template)

    logger.info("Built prompt for scenario %s (%d steps, %d chars)", scenario.id, len(visible_data), len(prompt))
    return prompt
