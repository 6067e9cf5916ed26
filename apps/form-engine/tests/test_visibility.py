import sys
import unittest
from pathlib import Path

FORM_ENGINE_ROOT = Path(__file__).resolve().parents[1]
if str(FORM_ENGINE_ROOT) not in sys.path:
    sys.path.insert(0, str(FORM_ENGINE_ROOT))

from formwizard.models import Scenario, SchemaConfigError, Step, collect_scope_ids  # noqa: E402
from formwizard.visibility import (  # noqa: E402
    extract_required_field_ids,
    filter_visible_form_data,
    filter_visible_scenario_data,
    get_visible_field_ids,
)

OVERVIEW = {
    "slug": "overview",
    "title": "Overview",
    "description": "Basic information about the feature",
    "name": "overview",
    "fields": [
        {"type": "input", "id": "title", "label": "Title", "required": True},
        {
            "type": "select",
            "id": "priority",
            "label": "Priority",
            "options": [
                {"value": "high", "label": "High"},
                {"value": "medium", "label": "Medium"},
                {"value": "low", "label": "Low"},
            ],
        },
        {
            "type": "grid",
            "columns": 2,
            "fields": [
                {
                    "type": "input",
                    "id": "deadline",
                    "label": "Deadline",
                    "inputType": "date",
                    "required": True,
                    "when": {"field": "priority", "is": "high"},
                },
                {
                    "type": "textarea",
                    "id": "risk_assessment",
                    "label": "Risk Assessment",
                    "when": {"field": "priority", "is": ["high", "medium"]},
                },
            ],
        },
        {
            "type": "repeatable",
            "id": "stakeholders",
            "label": "Stakeholders",
            "minCount": 1,
            "field": {
                "type": "group",
                "fields": [
                    {"type": "input", "id": "name", "label": "Name", "required": True},
                    {"type": "checkbox", "id": "approver", "label": "Approver"},
                    {
                        "type": "input",
                        "id": "approval_date",
                        "label": "Approval Date",
                        "when": {"field": "approver", "is": True},
                    },
                ],
            },
        },
    ],
}


def _overview():
    return Step.model_validate(OVERVIEW)


class VisibleFieldIdsTests(unittest.TestCase):
    def test_conditional_field_hidden(self):
        step = _overview()
        self.assertEqual(
            get_visible_field_ids(step.fields, {"priority": "low"}),
            ["title", "priority", "stakeholders"],
        )

    def test_conditional_fields_shown(self):
        step = _overview()
        self.assertEqual(
            get_visible_field_ids(step.fields, {"priority": "high"}),
            ["title", "priority", "deadline", "risk_assessment", "stakeholders"],
        )

    def test_visible_ids_are_scope_ids(self):
        step = _overview()
        scope_ids = set(collect_scope_ids(step.fields))
        for values in ({}, {"priority": "high"}, {"priority": "medium", "title": "x"}, {"stakeholders": None}):
            self.assertTrue(set(get_visible_field_ids(step.fields, values)) <= scope_ids)

    def test_repeatable_id_is_unconditional(self):
        step = _overview()
        self.assertIn("stakeholders", get_visible_field_ids(step.fields, {}))
        self.assertNotIn("name", get_visible_field_ids(step.fields, {}))

    def test_unknown_field_is_fatal(self):
        with self.assertRaises(SchemaConfigError):
            get_visible_field_ids([{"type": "slider", "id": "volume"}], {})


class RequiredFieldIdsTests(unittest.TestCase):
    def test_hidden_required_field_excluded(self):
        step = _overview()
        self.assertEqual(extract_required_field_ids(step.fields, {"priority": "low"}), ["title"])

    def test_visible_required_field_included(self):
        step = _overview()
        self.assertEqual(
            extract_required_field_ids(step.fields, {"priority": "high", "deadline": ""}),
            ["title", "deadline"],
        )

    def test_repeatables_are_excluded(self):
        step = _overview()
        required = extract_required_field_ids(step.fields, {"priority": "high"})
        self.assertNotIn("stakeholders", required)
        self.assertNotIn("name", required)

    def test_required_is_subset_of_visible(self):
        step = _overview()
        for values in ({}, {"priority": "high"}, {"priority": "medium"}):
            self.assertTrue(
                set(extract_required_field_ids(step.fields, values)) <= set(get_visible_field_ids(step.fields, values))
            )


class FilterVisibleFormDataTests(unittest.TestCase):
    def test_strips_hidden_and_unknown_keys(self):
        step = _overview()
        values = {
            "title": "Search",
            "priority": "low",
            "deadline": "2025-01-01",
            "risk_assessment": "none",
            "leftover": "x",
        }
        self.assertEqual(filter_visible_form_data(step, values), {"title": "Search", "priority": "low"})
        self.assertIn("deadline", values)

    def test_filters_repeatable_items_in_their_own_scope(self):
        step = _overview()
        values = {
            "title": "Search",
            "priority": "high",
            "deadline": "2025-01-01",
            "stakeholders": [
                {"name": "Ana", "approver": True, "approval_date": "2025-02-01"},
                {"name": "Bo", "approver": False, "approval_date": "stale"},
            ],
        }
        filtered = filter_visible_form_data(step, values)
        self.assertEqual(
            filtered["stakeholders"],
            [
                {"name": "Ana", "approver": True, "approval_date": "2025-02-01"},
                {"name": "Bo", "approver": False},
            ],
        )
        self.assertEqual(filtered["deadline"], "2025-01-01")
        self.assertEqual(values["stakeholders"][1]["approval_date"], "stale")

    def test_missing_values(self):
        step = _overview()
        self.assertIsNone(filter_visible_form_data(step, None))
        self.assertEqual(filter_visible_form_data(step, {}), {})

    def test_scenario_filter(self):
        scenario = Scenario.model_validate({"id": "design-doc", "name": "Design Doc", "steps": [OVERVIEW]})
        form_data = {
            "overview": {"title": "Search", "priority": "low", "deadline": "2025-01-01"},
            "unknown_step": {"a": 1},
        }
        self.assertEqual(
            filter_visible_scenario_data(scenario, form_data),
            {"overview": {"title": "Search", "priority": "low"}},
        )
        self.assertEqual(filter_visible_scenario_data(scenario, None), {})


if __name__ == "__main__":
    unittest.main()
