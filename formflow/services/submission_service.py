"""Submission resolver - create or amend a respondent's submission.

Security guidelines:
- The fingerprint (IP + user agent) is a coarse identity proxy, not a
  credential. Respondents behind one NAT with the same browser share it.
- Trust X-Forwarded-For only when TRUST_PROXY_HEADERS is set.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from fastapi import Request
from pydantic_core import to_jsonable_python
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import flag_modified

from formflow.core.config import settings
from formflow.core.errors import PersistenceFailure
from formflow.db.enums import DeviceType
from formflow.db.models import Submission
from formflow.db.session import commit_or_fail
from formflow.services import activity_service

logger = logging.getLogger(__name__)

UNKNOWN_USER_AGENT = "unknown"
LOCAL_IP = "127.0.0.1"


@dataclass(frozen=True)
class Fingerprint:
    ip_address: str
    user_agent: str


@dataclass(frozen=True)
class SubmissionMetadata:
    device_type: DeviceType = DeviceType.UNKNOWN
    location: dict[str, Any] | None = field(default=None, hash=False)


@dataclass(frozen=True)
class ResolveResult:
    submission_id: uuid.UUID
    submitted_at: datetime
    was_amend: bool

    @property
    def edit_deadline(self) -> datetime:
        """Amendments from the same fingerprint are accepted until this time."""
        return self.submitted_at + settings.edit_window


def get_client_ip(request: Request | None) -> str | None:
    """
    Extract client IP from request.

    Only trusts X-Forwarded-For when TRUST_PROXY_HEADERS=True (behind reverse proxy).
    In development/direct connections, uses request.client.host.
    """
    if not request:
        return None

    if settings.TRUST_PROXY_HEADERS:
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            # X-Forwarded-For: client, proxy1, proxy2 - take first
            return forwarded.split(",")[0].strip()

    if request.client:
        return request.client.host

    return None


def fingerprint_from_request(request: Request) -> Fingerprint:
    return Fingerprint(
        ip_address=get_client_ip(request) or LOCAL_IP,
        user_agent=request.headers.get("user-agent") or UNKNOWN_USER_AGENT,
    )


# =============================================================================
# Store operations
# =============================================================================


def get_response_count(db: Session, form_id: uuid.UUID) -> int:
    """Current number of stored submissions. Read without locking."""
    return (
        db.query(func.count(Submission.id)).filter(Submission.form_id == form_id).scalar() or 0
    )


def get_submission(db: Session, form_id: uuid.UUID, submission_id: uuid.UUID) -> Submission | None:
    return (
        db.query(Submission)
        .filter(Submission.form_id == form_id, Submission.id == submission_id)
        .first()
    )


def list_submissions(db: Session, form_id: uuid.UUID, limit: int | None = 200) -> list[Submission]:
    query = (
        db.query(Submission)
        .filter(Submission.form_id == form_id)
        .order_by(Submission.submitted_at.desc())
    )
    if limit:
        query = query.limit(limit)
    return query.all()


def find_recent_by_fingerprint(
    db: Session,
    form_id: uuid.UUID,
    fingerprint: Fingerprint,
    since: datetime,
) -> Submission | None:
    """Newest submission from ``fingerprint`` submitted strictly after ``since``."""
    return (
        db.query(Submission)
        .filter(
            Submission.form_id == form_id,
            Submission.ip_address == fingerprint.ip_address,
            Submission.user_agent == fingerprint.user_agent,
            Submission.submitted_at > since,
        )
        .order_by(Submission.submitted_at.desc())
        .first()
    )


def insert_submission(
    db: Session,
    form_id: uuid.UUID,
    fingerprint: Fingerprint,
    answers: dict[str, Any],
    metadata: SubmissionMetadata,
    submitted_at: datetime,
) -> Submission:
    submission = Submission(
        form_id=form_id,
        answers_json=answers,
        ip_address=fingerprint.ip_address,
        user_agent=fingerprint.user_agent,
        device_type=metadata.device_type.value,
        location_json=metadata.location,
        submitted_at=submitted_at,
    )
    db.add(submission)
    db.flush()
    return submission


def update_submission_answers(db: Session, submission: Submission, answers: dict[str, Any]) -> None:
    """Replace answers only. Metadata and submitted_at stay as first recorded."""
    submission.answers_json = answers
    flag_modified(submission, "answers_json")
    db.flush()


# =============================================================================
# Resolver
# =============================================================================


def resolve_submission(
    db: Session,
    form_id: uuid.UUID,
    fingerprint: Fingerprint,
    answers: dict[str, Any],
    metadata: SubmissionMetadata | None = None,
    now: datetime | None = None,
) -> ResolveResult:
    """
    Persist ``answers`` as a new submission or amend the one still in its edit window.

    The window is anchored to the original submitted_at, so amending never
    extends it. Two concurrent requests from one fingerprint are not
    serialised; the later write wins on answers.

    Raises:
        PersistenceFailure: the store failed; nothing was logged.
    """
    now = now or datetime.now(timezone.utc)
    metadata = metadata or SubmissionMetadata()
    payload = to_jsonable_python(answers)

    try:
        existing = find_recent_by_fingerprint(db, form_id, fingerprint, now - settings.edit_window)
        if existing:
            update_submission_answers(db, existing, payload)
            submission = existing
        else:
            submission = insert_submission(db, form_id, fingerprint, payload, metadata, now)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.warning("submission_persist_failed", extra={"form_id": str(form_id)}, exc_info=True)
        raise PersistenceFailure("Could not save submission") from exc

    result = ResolveResult(
        submission_id=submission.id,
        submitted_at=submission.submitted_at,
        was_amend=existing is not None,
    )
    logger.info(
        "submission_amended" if result.was_amend else "submission_created",
        extra={"form_id": str(form_id), "submission_id": str(result.submission_id)},
    )

    # Logged only once the submission is durable
    try:
        activity_service.log_final_submission_saved(
            db,
            form_id=form_id,
            submission_id=result.submission_id,
            was_amend=result.was_amend,
            timestamp=now,
        )
        commit_or_fail(db, "record submission activity")
    except (SQLAlchemyError, PersistenceFailure):
        db.rollback()
        logger.warning(
            "submission_activity_failed",
            extra={"form_id": str(form_id), "submission_id": str(result.submission_id)},
            exc_info=True,
        )

    return result
