"""Compile a form's field definitions into validation and visibility rules.

A compiled schema is a pure function of the field list. Answers change on every
keystroke, so ``visible`` and ``validate`` recompute from scratch on each call.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Callable, Iterable

from pydantic import EmailStr, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from formflow.core.errors import ConfigurationError
from formflow.db.enums import CHOICE_FIELD_TYPES, FieldType, LogicCondition
from formflow.schemas.forms import FieldLogic, FormField

logger = logging.getLogger(__name__)

REQUIRED_MESSAGE = "This field is required"
REQUIRED_CHOICE_MESSAGE = "Please select at least one option"

# Returns an error message for a present (non-empty) value, or None.
Constraint = Callable[[Any], "str | None"]

_EMAIL_ADAPTER = TypeAdapter(EmailStr)


def _is_empty(value: Any) -> bool:
    if value is None or value == "":
        return True
    return isinstance(value, (list, tuple, set, frozenset, dict)) and not value


def _char_bounds(field_def: FormField, value: str) -> str | None:
    validation = field_def.validation
    if not validation:
        return None
    if validation.min_chars is not None and len(value) < validation.min_chars:
        return f"Must be at least {validation.min_chars} characters"
    if validation.max_chars is not None and len(value) > validation.max_chars:
        return f"Must be at most {validation.max_chars} characters"
    return None


def _text_constraint(field_def: FormField) -> Constraint:
    def check(value: Any) -> str | None:
        if not isinstance(value, str):
            return "Must be text"
        return _char_bounds(field_def, value)

    return check


def _single_choice_constraint(field_def: FormField) -> Constraint:
    allowed = set(field_def.options or ())
    text_check = _text_constraint(field_def)

    def check(value: Any) -> str | None:
        error = text_check(value)
        if error:
            return error
        if allowed and value not in allowed:
            return "Select one of the available options"
        return None

    return check


def _multi_choice_constraint(field_def: FormField) -> Constraint:
    allowed = set(field_def.options or ())

    def check(value: Any) -> str | None:
        if not isinstance(value, (list, tuple)):
            return "Must be a list of options"
        for item in value:
            if not isinstance(item, str):
                return "Must be a list of options"
            if allowed and item not in allowed:
                return "Select only the available options"
        return None

    return check


def _email_constraint(field_def: FormField) -> Constraint:
    def check(value: Any) -> str | None:
        if not isinstance(value, str):
            return "Invalid email format"
        try:
            _EMAIL_ADAPTER.validate_python(value)
        except PydanticValidationError:
            return "Invalid email format"
        return None

    return check


def _number_constraint(field_def: FormField) -> Constraint:
    exact_digits = field_def.validation.exact_digits if field_def.validation else None

    def check(value: Any) -> str | None:
        if isinstance(value, bool):
            return "Must be a number"
        if isinstance(value, (int, float)):
            raw = str(value)
        elif isinstance(value, str):
            raw = value
        else:
            return "Must be a number"
        try:
            parsed = float(raw)
        except ValueError:
            return "Must be a number"
        if not math.isfinite(parsed):
            return "Must be a number"
        # Digit count applies to the raw input, so leading zeros count
        if exact_digits is not None and len(raw) != exact_digits:
            return f"Must be exactly {exact_digits} digits"
        return None

    return check


def _date_constraint(field_def: FormField) -> Constraint:
    def check(value: Any) -> str | None:
        if isinstance(value, (date, datetime)):
            return None
        if isinstance(value, str):
            try:
                date.fromisoformat(value)
                return None
            except ValueError:
                pass
            try:
                datetime.fromisoformat(value.replace("Z", "+00:00"))
                return None
            except ValueError:
                pass
        return "Invalid date"

    return check


def _presence_only(field_def: FormField) -> Constraint:
    # Structure is checked by the upload and geolocation collaborators
    return lambda value: None


CONSTRAINT_BUILDERS: dict[FieldType, Callable[[FormField], Constraint]] = {
    FieldType.TEXT: _text_constraint,
    FieldType.TEXTAREA: _text_constraint,
    FieldType.EMAIL: _email_constraint,
    FieldType.NUMBER: _number_constraint,
    FieldType.SELECT: _single_choice_constraint,
    FieldType.RADIO: _single_choice_constraint,
    FieldType.CHECKBOX: _multi_choice_constraint,
    FieldType.DATE: _date_constraint,
    FieldType.FILE: _presence_only,
    FieldType.LOCATION: _presence_only,
}


def evaluate_condition(logic: FieldLogic, value: Any) -> bool:
    expected = logic.value
    if logic.condition == LogicCondition.EQUALS:
        if expected is not None and isinstance(expected, str) and value is not None:
            return str(value) == expected
        return value == expected
    if logic.condition == LogicCondition.NOT_EQUALS:
        if expected is not None and isinstance(expected, str) and value is not None:
            return str(value) != expected
        return value != expected
    return True


@dataclass(frozen=True)
class CompiledSchema:
    """Validation contract and visibility table for one field list."""

    fields: tuple[FormField, ...]
    _constraints: dict[str, Constraint] = field(
        init=False, compare=False, repr=False, hash=False
    )

    def __post_init__(self) -> None:
        constraints = {f.id: CONSTRAINT_BUILDERS[f.type](f) for f in self.fields}
        object.__setattr__(self, "_constraints", constraints)

    @property
    def field_ids(self) -> list[str]:
        return [f.id for f in self.fields]

    def get_field(self, field_id: str) -> FormField | None:
        for f in self.fields:
            if f.id == field_id:
                return f
        return None

    def visible(self, answers: dict[str, Any]) -> set[str]:
        """Return ids of fields shown for ``answers``.

        A field whose trigger is hidden is hidden too. Each pass can only hide
        more fields, so the iteration settles within ``len(fields)`` passes; the
        extra pass confirms the fixpoint.
        """
        by_id = {f.id: f for f in self.fields}
        shown = set(by_id)
        for _ in range(len(self.fields) + 1):
            next_shown = {
                fid for fid, f in by_id.items() if self._is_shown(f, answers, shown, by_id)
            }
            if next_shown == shown:
                return next_shown
            shown = next_shown
        logger.warning("visibility_not_converged", extra={"field_count": len(self.fields)})
        raise ConfigurationError("Field visibility rules did not converge")

    def filter_answers(self, answers: dict[str, Any]) -> dict[str, Any]:
        """Drop answers of hidden and unknown fields."""
        shown = self.visible(answers)
        return {key: value for key, value in answers.items() if key in shown}

    def validate(self, answers: dict[str, Any]) -> dict[str, str]:
        """Return ``{field_id: message}`` for every visible field that fails."""
        shown = self.visible(answers)
        errors: dict[str, str] = {}
        for f in self.fields:
            if f.id not in shown:
                continue
            value = answers.get(f.id)
            if _is_empty(value):
                if f.required:
                    errors[f.id] = (
                        REQUIRED_CHOICE_MESSAGE if f.type == FieldType.CHECKBOX else REQUIRED_MESSAGE
                    )
                continue
            error = self._constraints[f.id](value)
            if error:
                errors[f.id] = error
        return errors

    @staticmethod
    def _is_shown(
        f: FormField,
        answers: dict[str, Any],
        shown: set[str],
        by_id: dict[str, FormField],
    ) -> bool:
        logic = f.logic
        if not logic:
            return True
        if logic.trigger_field_id not in by_id:
            # Dangling triggers are rejected on save; older forms stay usable
            return True
        if logic.trigger_field_id not in shown:
            return False
        return evaluate_condition(logic, answers.get(logic.trigger_field_id))


def parse_fields(fields: Iterable[FormField | dict[str, Any]]) -> tuple[FormField, ...]:
    return tuple(
        f if isinstance(f, FormField) else FormField.model_validate(f) for f in fields
    )


def compile_schema(fields: Iterable[FormField | dict[str, Any]]) -> CompiledSchema:
    return CompiledSchema(fields=parse_fields(fields))


def validate_field_definitions(fields: Iterable[FormField | dict[str, Any]]) -> None:
    """Reject field lists that cannot be evaluated. Called when a form is saved.

    Raises:
        ConfigurationError: duplicate ids, choice fields without options,
            inverted character bounds, or logic triggers that are missing,
            self-referencing or cyclic.
    """
    parsed = parse_fields(fields)
    by_id: dict[str, FormField] = {}
    for f in parsed:
        if f.id in by_id:
            raise ConfigurationError(f"Duplicate field id: {f.id}")
        by_id[f.id] = f

    for f in parsed:
        if f.type in CHOICE_FIELD_TYPES and not f.options:
            raise ConfigurationError(f"Field '{f.label}' must define at least one option")
        validation = f.validation
        if (
            validation
            and validation.min_chars is not None
            and validation.max_chars is not None
            and validation.min_chars > validation.max_chars
        ):
            raise ConfigurationError(f"Field '{f.label}' has min_chars greater than max_chars")
        if f.logic and f.logic.trigger_field_id not in by_id:
            raise ConfigurationError(
                f"Field '{f.label}' depends on unknown field: {f.logic.trigger_field_id}"
            )

    # Each field has at most one trigger, so walking the chain finds any cycle
    for f in parsed:
        seen = {f.id}
        current = f
        while current.logic:
            trigger_id = current.logic.trigger_field_id
            if trigger_id in seen:
                raise ConfigurationError(f"Field '{f.label}' has a cyclic visibility rule")
            seen.add(trigger_id)
            current = by_id[trigger_id]
