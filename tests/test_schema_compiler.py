"""Tests for compiling field definitions into validation and visibility rules."""

import pytest

from formflow.core.errors import ConfigurationError
from formflow.db.enums import LogicCondition
from formflow.schemas.forms import FieldLogic
from formflow.services.schema_compiler import (
    REQUIRED_CHOICE_MESSAGE,
    REQUIRED_MESSAGE,
    compile_schema,
    evaluate_condition,
    validate_field_definitions,
)


def _field(field_id, field_type="text", **extra):
    return {"id": field_id, "type": field_type, "label": field_id.title(), **extra}


ADDRESS_FIELDS = [
    _field("has_address", "radio", options=["yes", "no"], required=True),
    _field(
        "city",
        required=True,
        logic={"trigger_field_id": "has_address", "condition": "equals", "value": "yes"},
    ),
    _field(
        "district",
        required=True,
        logic={"trigger_field_id": "city", "condition": "not_equals", "value": ""},
    ),
]


def test_email_format_is_checked():
    schema = compile_schema([_field("email", "email", required=True)])

    assert "email" in schema.validate({"email": "not-an-email"})
    assert schema.validate({"email": "a@b.com"}) == {}


def test_required_fields_report_missing_values():
    schema = compile_schema(
        [
            _field("name", required=True),
            _field("topics", "checkbox", options=["a", "b"], required=True),
            _field("notes", "textarea"),
        ]
    )

    errors = schema.validate({"name": "", "topics": []})

    assert errors == {"name": REQUIRED_MESSAGE, "topics": REQUIRED_CHOICE_MESSAGE}


def test_hidden_field_is_not_required():
    schema = compile_schema(ADDRESS_FIELDS)
    answers = {"has_address": "no"}

    assert "city" not in schema.visible(answers)
    assert "city" not in schema.validate(answers)


def test_hidden_trigger_hides_dependents():
    schema = compile_schema(ADDRESS_FIELDS)
    # district's own condition holds, but its trigger is hidden
    answers = {"has_address": "no", "city": "Leeds"}

    assert schema.visible(answers) == {"has_address"}
    assert schema.validate(answers) == {}


def test_visible_chain_is_enforced():
    schema = compile_schema(ADDRESS_FIELDS)
    answers = {"has_address": "yes", "city": "Leeds"}

    assert schema.visible(answers) == {"has_address", "city", "district"}
    assert schema.validate(answers) == {"district": REQUIRED_MESSAGE}


def test_validate_is_stable_across_calls():
    schema = compile_schema(ADDRESS_FIELDS)
    answers = {"has_address": "yes"}

    assert schema.validate(answers) == schema.validate(answers)
    assert schema.visible(answers) == schema.visible(answers)


def test_filter_answers_drops_hidden_and_unknown_keys():
    schema = compile_schema(ADDRESS_FIELDS)

    filtered = schema.filter_answers(
        {"has_address": "no", "city": "Leeds", "unexpected": "value"}
    )

    assert filtered == {"has_address": "no"}


def test_text_length_bounds():
    schema = compile_schema(
        [_field("bio", "textarea", validation={"min_chars": 3, "max_chars": 5})]
    )

    assert schema.validate({"bio": "ab"}) == {"bio": "Must be at least 3 characters"}
    assert schema.validate({"bio": "abcdef"}) == {"bio": "Must be at most 5 characters"}
    assert schema.validate({"bio": "abcd"}) == {}


@pytest.mark.parametrize(
    "value,expected",
    [
        ("0123", None),
        ("123", "Must be exactly 4 digits"),
        ("abc", "Must be a number"),
        (True, "Must be a number"),
        ("nan", "Must be a number"),
    ],
)
def test_number_constraints(value, expected):
    schema = compile_schema([_field("pin", "number", validation={"exact_digits": 4})])

    assert schema.validate({"pin": value}).get("pin") == expected


def test_choice_answers_must_come_from_options():
    schema = compile_schema(
        [
            _field("size", "select", options=["S", "M"]),
            _field("extras", "checkbox", options=["bag", "box"]),
        ]
    )

    errors = schema.validate({"size": "XL", "extras": ["bag", "ribbon"]})

    assert errors == {
        "size": "Select one of the available options",
        "extras": "Select only the available options",
    }
    assert schema.validate({"size": "M", "extras": ["box"]}) == {}


def test_date_values():
    schema = compile_schema([_field("start", "date")])

    assert schema.validate({"start": "2026-02-28"}) == {}
    assert schema.validate({"start": "2026-02-30"}) == {"start": "Invalid date"}


def test_condition_compares_as_text_when_expected_value_is_text():
    logic = FieldLogic(trigger_field_id="age", condition=LogicCondition.EQUALS, value="5")

    assert evaluate_condition(logic, 5) is True
    assert evaluate_condition(logic, None) is False


def test_dangling_trigger_leaves_field_visible_at_runtime():
    schema = compile_schema(
        [
            _field(
                "orphan",
                logic={"trigger_field_id": "gone", "condition": "equals", "value": "x"},
            )
        ]
    )

    assert schema.visible({}) == {"orphan"}


# =============================================================================
# Save-time definition checks
# =============================================================================


def test_definitions_reject_duplicate_ids():
    with pytest.raises(ConfigurationError, match="Duplicate field id"):
        validate_field_definitions([_field("a"), _field("a")])


def test_definitions_reject_unknown_trigger():
    with pytest.raises(ConfigurationError, match="unknown field: missing"):
        validate_field_definitions(
            [_field("a", logic={"trigger_field_id": "missing", "condition": "equals"})]
        )


def test_definitions_reject_cycles():
    fields = [
        _field("a", logic={"trigger_field_id": "b", "condition": "equals", "value": "1"}),
        _field("b", logic={"trigger_field_id": "a", "condition": "equals", "value": "1"}),
    ]

    with pytest.raises(ConfigurationError, match="cyclic"):
        validate_field_definitions(fields)


def test_definitions_reject_self_reference():
    with pytest.raises(ConfigurationError, match="cyclic"):
        validate_field_definitions(
            [_field("a", logic={"trigger_field_id": "a", "condition": "equals", "value": "1"})]
        )


def test_definitions_reject_choice_without_options():
    with pytest.raises(ConfigurationError, match="at least one option"):
        validate_field_definitions([_field("size", "select")])


def test_definitions_reject_inverted_bounds():
    with pytest.raises(ConfigurationError, match="min_chars"):
        validate_field_definitions([_field("a", validation={"min_chars": 5, "max_chars": 2})])


def test_definitions_accept_address_chain():
    validate_field_definitions(ADDRESS_FIELDS)


def test_compiling_twice_yields_equal_schemas():
    assert compile_schema(ADDRESS_FIELDS) == compile_schema(ADDRESS_FIELDS)


def test_empty_tuple_fails_required_checkbox():
    schema = compile_schema(
        [_field("topics", "checkbox", options=["a", "b"], required=True)]
    )

    assert schema.validate({"topics": ()}) == {"topics": REQUIRED_CHOICE_MESSAGE}
    assert schema.validate({"topics": ("a",)}) == {}
