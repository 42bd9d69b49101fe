"""Schemas for forms, field definitions and form settings."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from formflow.db.enums import (
    FieldType,
    FormStatus,
    FormVisibility,
    GateStatus,
    LogicCondition,
)
from formflow.db.models import DEFAULT_CLOSED_MESSAGE


class FieldLogic(BaseModel):
    """Show the owning field only when the trigger field's answer matches."""

    model_config = ConfigDict(frozen=True)

    trigger_field_id: str = Field(..., min_length=1, max_length=100)
    condition: LogicCondition
    value: object | None = None


class FieldValidation(BaseModel):
    model_config = ConfigDict(frozen=True)

    min_chars: int | None = Field(None, ge=0)
    max_chars: int | None = Field(None, ge=0)
    exact_digits: int | None = Field(None, ge=1)
    capture_city: bool = False


class FormField(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1, max_length=100)
    type: FieldType
    label: str = Field(..., min_length=1, max_length=200)
    placeholder: str | None = None
    help_text: str | None = None
    required: bool = False
    options: tuple[str, ...] | None = None
    logic: FieldLogic | None = None
    validation: FieldValidation | None = None


class FormSettings(BaseModel):
    is_active: bool = True
    expiry_date: datetime | None = None
    max_responses: int = Field(0, ge=0)  # 0 = unlimited
    single_submission: bool = False
    closed_message: str = DEFAULT_CLOSED_MESSAGE
    status: FormStatus = FormStatus.DRAFT
    visibility: FormVisibility = FormVisibility.PUBLIC
    password: str = ""


class FormSettingsUpdate(BaseModel):
    is_active: bool | None = None
    expiry_date: datetime | None = None
    max_responses: int | None = Field(None, ge=0)
    single_submission: bool | None = None
    closed_message: str | None = None
    status: FormStatus | None = None
    visibility: FormVisibility | None = None
    password: str | None = None


class FormSettingsRead(BaseModel):
    is_active: bool
    expiry_date: datetime | None
    max_responses: int
    single_submission: bool
    closed_message: str
    status: FormStatus
    visibility: FormVisibility
    has_password: bool


class FormCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: str | None = None
    creator_id: str | None = Field(None, max_length=100)
    fields: list[FormField] = Field(default_factory=list)
    settings: FormSettings | None = None


class FormUpdate(BaseModel):
    title: str | None = Field(None, min_length=1, max_length=200)
    description: str | None = None
    fields: list[FormField] | None = None
    settings: FormSettingsUpdate | None = None


class FormRead(BaseModel):
    id: UUID
    title: str
    description: str | None
    fields: list[FormField]
    settings: FormSettingsRead
    created_at: datetime
    updated_at: datetime


class GateRead(BaseModel):
    status: GateStatus
    allowed: bool
    reason: str | None = None
    message: str | None = None


class FormPublicRead(BaseModel):
    form_id: UUID
    title: str
    description: str | None
    locked: bool
    gate: GateRead
    fields: list[FormField]
    review_window_seconds: int
    edit_window_minutes: int


class FormUnlockRequest(BaseModel):
    password: str


class FormActivityRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    form_id: UUID
    event_type: str
    description: str
    details: dict | None
    timestamp: datetime
