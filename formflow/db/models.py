"""SQLAlchemy ORM models for forms, submissions and form activity."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from formflow.db.base import Base
from formflow.db.enums import DeviceType, FormStatus, FormVisibility

DEFAULT_CLOSED_MESSAGE = "This form is no longer accepting responses."


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Form(Base):
    """A form definition plus its publication settings."""

    __tablename__ = "forms"
    __table_args__ = (Index("idx_forms_creator", "creator_id"),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    creator_id: Mapped[str | None] = mapped_column(String(100), nullable=True)

    # Ordered field definitions (see schemas.forms.FormField)
    fields_json: Mapped[list] = mapped_column(JSON, default=list, nullable=False)

    # Settings
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    expiry_date: Mapped[datetime | None] = mapped_column(nullable=True)
    max_responses: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    single_submission: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    closed_message: Mapped[str] = mapped_column(
        Text, default=DEFAULT_CLOSED_MESSAGE, nullable=False
    )
    status: Mapped[str] = mapped_column(
        String(20), default=FormStatus.DRAFT.value, nullable=False
    )
    visibility: Mapped[str] = mapped_column(
        String(30), default=FormVisibility.PUBLIC.value, nullable=False
    )
    password: Mapped[str] = mapped_column(String(200), default="", nullable=False)

    created_at: Mapped[datetime] = mapped_column(default=_utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        default=_utcnow, onupdate=_utcnow, nullable=False
    )


class Submission(Base):
    """A respondent's answers to a form."""

    __tablename__ = "submissions"
    __table_args__ = (
        Index("idx_submissions_form", "form_id"),
        Index(
            "idx_submissions_fingerprint",
            "form_id",
            "ip_address",
            "user_agent",
            "submitted_at",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    form_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("forms.id", ondelete="CASCADE"), nullable=False
    )
    answers_json: Mapped[dict] = mapped_column(JSON, nullable=False)

    # Request metadata
    ip_address: Mapped[str] = mapped_column(String(64), nullable=False)
    user_agent: Mapped[str] = mapped_column(Text, nullable=False)
    device_type: Mapped[str] = mapped_column(
        String(20), default=DeviceType.UNKNOWN.value, nullable=False
    )
    location_json: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    # Anchor of the edit window; never moved by an amend
    submitted_at: Mapped[datetime] = mapped_column(nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        default=_utcnow, onupdate=_utcnow, nullable=False
    )

    form: Mapped["Form"] = relationship()


class FormActivity(Base):
    """Append-only activity log entry for a form."""

    __tablename__ = "form_activities"
    __table_args__ = (Index("idx_form_activities_form_ts", "form_id", "timestamp"),)

    # Integer key doubles as append order for events sharing a timestamp
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    form_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("forms.id", ondelete="CASCADE"), nullable=False
    )
    event_type: Mapped[str] = mapped_column(String(40), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    details: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    timestamp: Mapped[datetime] = mapped_column(default=_utcnow, nullable=False)
