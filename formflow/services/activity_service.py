"""Activity logging service - append-only form activity tracking."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from formflow.core.config import settings
from formflow.db.enums import FormActivityType
from formflow.db.models import FormActivity

logger = logging.getLogger(__name__)


def record(
    db: Session,
    form_id: UUID,
    event_type: FormActivityType | str,
    description: str,
    details: dict[str, Any] | None = None,
    timestamp: datetime | None = None,
) -> FormActivity:
    """
    Append an activity event for a form.

    Args:
        db: Database session
        form_id: The form this event belongs to
        event_type: One of FormActivityType (raw strings must match a member)
        description: Human-readable summary shown in the activity sidebar
        details: Free-form event metadata as JSON
        timestamp: Event time (defaults to now)

    Returns:
        The created activity entry. Not committed - caller controls the transaction.
    """
    activity_type = FormActivityType(event_type)
    activity = FormActivity(
        form_id=form_id,
        event_type=activity_type.value,
        description=description,
        details=details,
        timestamp=timestamp or datetime.now(timezone.utc),
    )
    db.add(activity)
    db.flush()
    logger.info(
        "form_activity_recorded",
        extra={"form_id": str(form_id), "event_type": activity_type.value},
    )
    return activity


def list_activity(db: Session, form_id: UUID, limit: int | None = None) -> list[FormActivity]:
    """Events for a form, newest first, capped at ACTIVITY_PAGE_SIZE."""
    page_size = settings.ACTIVITY_PAGE_SIZE
    if limit is not None:
        page_size = max(0, min(limit, page_size))
    return (
        db.query(FormActivity)
        .filter(FormActivity.form_id == form_id)
        .order_by(FormActivity.timestamp.desc(), FormActivity.id.desc())
        .limit(page_size)
        .all()
    )


def log_form_created(db: Session, form_id: UUID, title: str) -> FormActivity:
    return record(
        db,
        form_id,
        FormActivityType.CREATED,
        f"Form '{title}' created",
    )


def log_settings_updated(db: Session, form_id: UUID, changed: list[str]) -> FormActivity:
    """Log a settings change. Only field names are stored, never values."""
    return record(
        db,
        form_id,
        FormActivityType.SETTINGS_UPDATED,
        "Form settings updated",
        details={"changed": sorted(changed)},
    )


def log_status_changed(
    db: Session, form_id: UUID, old_status: str, new_status: str
) -> FormActivity:
    return record(
        db,
        form_id,
        FormActivityType.STATUS_CHANGED,
        f"Status changed from {old_status} to {new_status}",
        details={"from": old_status, "to": new_status},
    )


def log_submission_initiated(
    db: Session, form_id: UUID, details: dict[str, Any] | None = None
) -> FormActivity:
    return record(
        db,
        form_id,
        FormActivityType.SUBMISSION_INITIATED,
        "Respondent started submission countdown",
        details=details,
    )


def log_submission_undone(
    db: Session, form_id: UUID, details: dict[str, Any] | None = None
) -> FormActivity:
    return record(
        db,
        form_id,
        FormActivityType.SUBMISSION_UNDONE,
        "Respondent cancelled submission before commit",
        details=details,
    )


def log_final_submission_saved(
    db: Session,
    form_id: UUID,
    submission_id: UUID,
    was_amend: bool,
    timestamp: datetime | None = None,
) -> FormActivity:
    description = "Response updated within edit window" if was_amend else "New response submitted"
    return record(
        db,
        form_id,
        FormActivityType.FINAL_SUBMISSION_SAVED,
        description,
        details={"submission_id": str(submission_id), "was_amend": was_amend},
        timestamp=timestamp,
    )
