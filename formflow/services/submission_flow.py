"""Admission path for a respondent's answers.

gate -> compile schema -> drop hidden answers -> validate -> resolve.
Used by the public submit endpoint and by in-process commit sequencers.
"""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from sqlalchemy.orm import Session

from formflow.core.config import settings
from formflow.db.enums import FieldType, FormActivityType
from formflow.db.models import Form
from formflow.db.session import store_errors
from formflow.services import activity_service, device_service, form_service, submission_service
from formflow.services.commit_sequencer import CommitRejected
from formflow.services.gate_service import GateResult, evaluate_gate
from formflow.services.schema_compiler import CompiledSchema
from formflow.services.submission_service import (
    Fingerprint,
    ResolveResult,
    SubmissionMetadata,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AdmissionOutcome:
    gate: GateResult
    errors: dict[str, str] = field(default_factory=dict, hash=False)
    result: ResolveResult | None = None

    @property
    def accepted(self) -> bool:
        return self.result is not None


def check_admission(
    db: Session,
    form: Form,
    now: datetime,
    prior_marker: str | None = None,
    fingerprint: Fingerprint | None = None,
) -> GateResult:
    """Evaluate the gate for this requester.

    A submission that would amend an in-window record is not a new response:
    it is checked with the record excluded from the count and without the
    prior-submission marker. Closed, deactivated and expired forms still
    refuse it.
    """
    existing = None
    with store_errors(db, "read submission state"):
        count = submission_service.get_response_count(db, form.id)
        if fingerprint is not None:
            existing = submission_service.find_recent_by_fingerprint(
                db, form.id, fingerprint, now - settings.edit_window
            )
    if existing is not None:
        return evaluate_gate(form, max(0, count - 1), now, prior_marker=None)
    return evaluate_gate(form, count, now, prior_marker)


def build_metadata(
    schema: CompiledSchema, answers: dict[str, Any], user_agent: str | None
) -> SubmissionMetadata:
    location = None
    for f in schema.fields:
        if f.type != FieldType.LOCATION or f.id not in answers:
            continue
        capture_city = bool(f.validation and f.validation.capture_city)
        location = device_service.resolve_location(answers[f.id], capture_city)
        if location:
            break
    return SubmissionMetadata(
        device_type=device_service.detect_device(user_agent),
        location=location,
    )


def submit_answers(
    db: Session,
    form: Form,
    fingerprint: Fingerprint,
    answers: dict[str, Any],
    prior_marker: str | None = None,
    now: datetime | None = None,
) -> AdmissionOutcome:
    """
    Admit and persist answers.

    Gate rejections and validation errors are returned, not raised.

    Raises:
        PersistenceFailure: the store failed during resolve.
    """
    now = now or datetime.now(timezone.utc)
    gate = check_admission(db, form, now, prior_marker, fingerprint)
    if not gate.allowed:
        logger.info(
            "gate_rejected",
            extra={"form_id": str(form.id), "gate_status": gate.status.value},
        )
        return AdmissionOutcome(gate=gate)

    schema = form_service.compile_form_schema(form)
    visible_answers = schema.filter_answers(answers)
    errors = schema.validate(visible_answers)
    if errors:
        return AdmissionOutcome(gate=gate, errors=errors)

    metadata = build_metadata(schema, visible_answers, fingerprint.user_agent)
    result = submission_service.resolve_submission(
        db,
        form_id=form.id,
        fingerprint=fingerprint,
        answers=visible_answers,
        metadata=metadata,
        now=now,
    )
    return AdmissionOutcome(gate=gate, result=result)


def record_sequencer_event(
    db: Session,
    form: Form,
    event_type: FormActivityType,
    details: dict[str, Any] | None = None,
) -> None:
    """Persist an ``initiated``/``undone`` countdown transition.

    Raises:
        ValueError: event_type is not a countdown transition.
        PersistenceFailure: the store failed.
    """
    if event_type not in (
        FormActivityType.SUBMISSION_INITIATED,
        FormActivityType.SUBMISSION_UNDONE,
    ):
        raise ValueError(f"Not a countdown event: {event_type}")
    with store_errors(db, "record submission event"):
        if event_type == FormActivityType.SUBMISSION_INITIATED:
            activity_service.log_submission_initiated(db, form.id, details)
        else:
            activity_service.log_submission_undone(db, form.id, details)
        db.commit()


class LocalCommitPorts:
    """Commit sequencer ports backed directly by the service layer.

    Holds the prior-submission marker the way a browser holds the cookie: a
    successful commit sets it, so later attempts through the same ports on a
    single-submission form from another fingerprint are refused.
    """

    def __init__(
        self,
        db: Session,
        form: Form,
        fingerprint: Fingerprint,
        prior_marker: str | None = None,
        clock=lambda: datetime.now(timezone.utc),
    ) -> None:
        self.db = db
        self.form = form
        self.fingerprint = fingerprint
        self.prior_marker = prior_marker
        self.clock = clock

    def gate_check(self) -> GateResult:
        return check_admission(
            self.db, self.form, self.clock(), self.prior_marker, self.fingerprint
        )

    def record(self, event_type: FormActivityType, details: dict[str, Any] | None = None) -> None:
        record_sequencer_event(self.db, self.form, event_type, details)

    def resolve(self, answers: dict[str, Any]) -> ResolveResult | CommitRejected:
        outcome = submit_answers(
            self.db,
            self.form,
            self.fingerprint,
            answers,
            prior_marker=self.prior_marker,
            now=self.clock(),
        )
        if not outcome.gate.allowed:
            return CommitRejected(gate=outcome.gate)
        if outcome.errors:
            return CommitRejected(errors=outcome.errors)
        if self.prior_marker is None:
            self.prior_marker = secrets.token_urlsafe(16)
        return outcome.result
