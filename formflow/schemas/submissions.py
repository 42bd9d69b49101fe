"""Schemas for public submissions and submission lifecycle events."""

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class SubmissionCreate(BaseModel):
    answers: dict[str, object]


class SubmissionEventCreate(BaseModel):
    """Respondent-side commit countdown transitions reported to the server."""

    event: Literal["initiated", "undone"]
    details: dict[str, object] | None = None


class SubmissionResultRead(BaseModel):
    submission_id: UUID
    submitted_at: datetime
    edit_deadline: datetime
    was_amend: bool


class SubmissionRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    form_id: UUID
    answers: dict = Field(validation_alias="answers_json")
    device_type: str
    location: dict | None = Field(None, validation_alias="location_json")
    submitted_at: datetime
    updated_at: datetime


class ChoiceOptionCount(BaseModel):
    name: str
    value: int


class ChoiceFieldSummary(BaseModel):
    field_id: str
    label: str
    type: str
    data: list[ChoiceOptionCount]
    total: int
    top_option: str
    percentage: int


class FormAnalyticsRead(BaseModel):
    response_count: int
    device_breakdown: dict[str, int]
    fields: list[ChoiceFieldSummary]
