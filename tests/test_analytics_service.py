"""Tests for choice-field response analytics."""

from formflow.schemas.forms import FormField
from formflow.services.analytics_service import device_breakdown, summarize_choice_fields

FIELDS = [
    FormField.model_validate({"id": "name", "type": "text", "label": "Name"}),
    FormField.model_validate(
        {"id": "plan", "type": "radio", "label": "Plan", "options": ["Basic", "Pro"]}
    ),
    FormField.model_validate(
        {"id": "extras", "type": "checkbox", "label": "Extras", "options": ["bag", "box", "card"]}
    ),
]


def test_choice_fields_are_summarised():
    answer_sets = [
        {"name": "a", "plan": "Pro", "extras": ["bag", "box"]},
        {"name": "b", "plan": "Pro", "extras": ["box"]},
        {"name": "c", "plan": "Basic"},
    ]

    plan, extras = summarize_choice_fields(FIELDS, answer_sets)

    assert plan.field_id == "plan"
    assert [(d.name, d.value) for d in plan.data] == [("Basic", 1), ("Pro", 2)]
    assert plan.total == 3
    assert plan.top_option == "Pro"
    assert plan.percentage == 67

    assert [(d.name, d.value) for d in extras.data] == [("bag", 1), ("box", 2), ("card", 0)]
    assert extras.top_option == "box"
    assert extras.percentage == 67


def test_no_responses():
    summaries = summarize_choice_fields(FIELDS, [])

    assert all(s.total == 0 and s.percentage == 0 for s in summaries)


def test_device_breakdown_lists_every_device_type():
    breakdown = device_breakdown(["mobile", "desktop", "mobile"])

    assert breakdown == {"mobile": 2, "tablet": 0, "desktop": 1, "unknown": 0}
