"""Form service - create, read and partially update forms."""

from __future__ import annotations

import logging
import uuid
from typing import Any

from pydantic_core import to_jsonable_python
from sqlalchemy.orm import Session

from formflow.core.errors import FormNotFound
from formflow.db.enums import FormStatus, FormVisibility
from formflow.db.models import Form
from formflow.db.session import store_errors
from formflow.schemas.forms import (
    FormField,
    FormSettings,
    FormSettingsRead,
    FormSettingsUpdate,
)
from formflow.services import activity_service
from formflow.services.schema_compiler import (
    CompiledSchema,
    compile_schema,
    parse_fields,
    validate_field_definitions,
)

logger = logging.getLogger(__name__)

SETTINGS_COLUMNS = (
    "is_active",
    "expiry_date",
    "max_responses",
    "single_submission",
    "closed_message",
    "status",
    "visibility",
    "password",
)


def _dump_fields(fields: list[FormField]) -> list[dict[str, Any]]:
    return [to_jsonable_python(f.model_dump(exclude_none=True)) for f in fields]


def _column_value(value: Any) -> Any:
    if isinstance(value, (FormStatus, FormVisibility)):
        return value.value
    return value


def get_form(db: Session, form_id: uuid.UUID) -> Form | None:
    return db.query(Form).filter(Form.id == form_id).first()


def get_form_or_raise(db: Session, form_id: uuid.UUID) -> Form:
    form = get_form(db, form_id)
    if not form:
        raise FormNotFound(str(form_id))
    return form


def get_fields(form: Form) -> list[FormField]:
    return list(parse_fields(form.fields_json or []))


def compile_form_schema(form: Form) -> CompiledSchema:
    """Compile the stored field list. Never cached; fields may change between calls."""
    return compile_schema(form.fields_json or [])


def get_settings(form: Form) -> FormSettingsRead:
    return FormSettingsRead(
        is_active=form.is_active,
        expiry_date=form.expiry_date,
        max_responses=form.max_responses,
        single_submission=form.single_submission,
        closed_message=form.closed_message,
        status=FormStatus(form.status),
        visibility=FormVisibility(form.visibility),
        has_password=bool(form.password),
    )


def create_form(
    db: Session,
    title: str,
    description: str | None = None,
    fields: list[FormField] | None = None,
    form_settings: FormSettings | None = None,
    creator_id: str | None = None,
) -> Form:
    """Create a form after checking its field definitions.

    Raises:
        ConfigurationError: invalid field definitions.
        PersistenceFailure: the store failed; nothing was written.
    """
    fields = fields or []
    validate_field_definitions(fields)
    form_settings = form_settings or FormSettings()

    form = Form(
        title=title,
        description=description,
        creator_id=creator_id,
        fields_json=_dump_fields(fields),
    )
    for column in SETTINGS_COLUMNS:
        setattr(form, column, _column_value(getattr(form_settings, column)))

    with store_errors(db, "create form"):
        db.add(form)
        db.flush()
        activity_service.log_form_created(db, form.id, title)
        db.commit()
        db.refresh(form)
    logger.info("form_created", extra={"form_id": str(form.id)})
    return form


def update_form(
    db: Session,
    form: Form,
    title: str | None = None,
    description: str | None = None,
    fields: list[FormField] | None = None,
    settings_update: FormSettingsUpdate | None = None,
) -> Form:
    """Apply a partial update.

    Field lists are validated before anything is written. Status moves log
    ``status_changed``; other settings log ``settings_updated``.

    Raises:
        ConfigurationError: invalid field definitions.
        PersistenceFailure: the store failed; the update was rolled back.
    """
    if fields is not None:
        validate_field_definitions(fields)
        form.fields_json = _dump_fields(fields)
    if title is not None:
        form.title = title
    if description is not None:
        form.description = description

    changed: list[str] = []
    old_status = form.status
    if settings_update is not None:
        for column, value in settings_update.model_dump(exclude_unset=True).items():
            if value is None and column != "expiry_date":
                continue
            value = _column_value(value)
            if getattr(form, column) != value:
                setattr(form, column, value)
                changed.append(column)

    with store_errors(db, "update form"):
        if "status" in changed:
            activity_service.log_status_changed(db, form.id, old_status, form.status)
            changed.remove("status")
        if changed:
            activity_service.log_settings_updated(db, form.id, changed)
        db.commit()
        db.refresh(form)
    return form
