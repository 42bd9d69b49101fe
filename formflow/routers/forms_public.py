"""Public form endpoints for respondents."""

import logging
import secrets
from datetime import datetime, timedelta, timezone
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from sqlalchemy.orm import Session

from formflow.core.config import settings
from formflow.core.deps import get_db
from formflow.core.errors import PersistenceFailure
from formflow.core.rate_limit import limiter
from formflow.core.structured_logging import build_log_context
from formflow.db.enums import FormActivityType
from formflow.db.models import Form
from formflow.schemas.forms import FormPublicRead, FormUnlockRequest, GateRead
from formflow.schemas.submissions import (
    SubmissionCreate,
    SubmissionEventCreate,
    SubmissionResultRead,
)
from formflow.services import form_service, gate_service, submission_flow, submission_service
from formflow.services.gate_service import GateResult

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/forms/public", tags=["forms-public"])

SUBMITTED_COOKIE_PREFIX = "ff_submitted_"
UNLOCK_COOKIE_PREFIX = "ff_unlock_"

_EVENT_TYPES = {
    "initiated": FormActivityType.SUBMISSION_INITIATED,
    "undone": FormActivityType.SUBMISSION_UNDONE,
}


def submitted_cookie_name(form_id: UUID) -> str:
    return f"{SUBMITTED_COOKIE_PREFIX}{form_id.hex}"


def unlock_cookie_name(form_id: UUID) -> str:
    return f"{UNLOCK_COOKIE_PREFIX}{form_id.hex}"


def _gate_read(gate: GateResult) -> GateRead:
    return GateRead(
        status=gate.status,
        allowed=gate.allowed,
        reason=gate.reason,
        message=gate.message,
    )


def _get_form_or_404(db: Session, form_id: UUID) -> Form:
    form = form_service.get_form(db, form_id)
    if not form:
        raise HTTPException(status_code=404, detail="Form not found")
    return form


def _require_unlocked(request: Request, form: Form) -> None:
    token = request.cookies.get(unlock_cookie_name(form.id))
    if not gate_service.is_unlocked(form, form.id, token):
        raise HTTPException(status_code=401, detail="Password required")


def _set_cookie(response: Response, name: str, value: str, max_age: timedelta) -> None:
    response.set_cookie(
        key=name,
        value=value,
        max_age=int(max_age.total_seconds()),
        httponly=True,
        secure=settings.cookie_secure,
        samesite="lax",
        path="/",
    )


@router.get("/{form_id}", response_model=FormPublicRead)
@limiter.limit(f"{settings.RATE_LIMIT_PUBLIC_READ}/minute")
def get_public_form(request: Request, form_id: UUID, db: Session = Depends(get_db)):
    form = _get_form_or_404(db, form_id)
    now = datetime.now(timezone.utc)

    locked = not gate_service.is_unlocked(
        form, form.id, request.cookies.get(unlock_cookie_name(form.id))
    )
    gate = submission_flow.check_admission(
        db,
        form,
        now,
        prior_marker=request.cookies.get(submitted_cookie_name(form.id)),
        fingerprint=submission_service.fingerprint_from_request(request),
    )
    show_fields = gate.allowed and not locked

    return FormPublicRead(
        form_id=form.id,
        title=form.title,
        description=form.description,
        locked=locked,
        gate=_gate_read(gate),
        fields=form_service.get_fields(form) if show_fields else [],
        review_window_seconds=settings.REVIEW_WINDOW_SECONDS,
        edit_window_minutes=settings.EDIT_WINDOW_MINUTES,
    )


@router.post("/{form_id}/unlock")
@limiter.limit(f"{settings.RATE_LIMIT_PUBLIC_SUBMIT}/minute")
def unlock_public_form(
    request: Request,
    response: Response,
    form_id: UUID,
    body: FormUnlockRequest,
    db: Session = Depends(get_db),
):
    form = _get_form_or_404(db, form_id)
    if not gate_service.requires_unlock(form):
        return {"unlocked": True}
    if not gate_service.check_password(form, body.password):
        raise HTTPException(status_code=401, detail="Incorrect password")

    _set_cookie(
        response,
        unlock_cookie_name(form.id),
        gate_service.make_unlock_token(form.id, form.password),
        timedelta(hours=settings.UNLOCK_MAX_AGE_HOURS),
    )
    return {"unlocked": True}


@router.post("/{form_id}/events", status_code=201)
@limiter.limit(f"{settings.RATE_LIMIT_PUBLIC_SUBMIT}/minute")
def record_submission_event(
    request: Request,
    form_id: UUID,
    body: SubmissionEventCreate,
    db: Session = Depends(get_db),
):
    form = _get_form_or_404(db, form_id)
    _require_unlocked(request, form)
    try:
        submission_flow.record_sequencer_event(db, form, _EVENT_TYPES[body.event], body.details)
    except PersistenceFailure as exc:
        raise HTTPException(status_code=503, detail="Please try again") from exc
    return {"recorded": body.event}


@router.post("/{form_id}/submit", response_model=SubmissionResultRead)
@limiter.limit(f"{settings.RATE_LIMIT_PUBLIC_SUBMIT}/minute")
def submit_public_form(
    request: Request,
    response: Response,
    form_id: UUID,
    body: SubmissionCreate,
    db: Session = Depends(get_db),
):
    form = _get_form_or_404(db, form_id)
    _require_unlocked(request, form)

    marker_name = submitted_cookie_name(form.id)
    prior_marker = request.cookies.get(marker_name)
    try:
        outcome = submission_flow.submit_answers(
            db,
            form,
            submission_service.fingerprint_from_request(request),
            body.answers,
            prior_marker=prior_marker,
        )
    except PersistenceFailure as exc:
        raise HTTPException(status_code=503, detail="Failed to submit response, please try again") from exc

    if not outcome.gate.allowed:
        raise HTTPException(
            status_code=403,
            detail={
                "status": outcome.gate.status.value,
                "reason": outcome.gate.reason,
                "message": outcome.gate.message,
            },
        )
    if outcome.errors:
        raise HTTPException(status_code=422, detail={"errors": outcome.errors})

    result = outcome.result
    _set_cookie(
        response,
        marker_name,
        prior_marker or secrets.token_urlsafe(16),
        timedelta(days=settings.SUBMITTED_MARKER_MAX_AGE_DAYS),
    )
    logger.info(
        "public_submission_saved",
        extra=build_log_context(
            form_id=form.id,
            submission_id=result.submission_id,
            route=request.url.path,
            method=request.method,
        ),
    )
    return SubmissionResultRead(
        submission_id=result.submission_id,
        submitted_at=result.submitted_at,
        edit_deadline=result.edit_deadline,
        was_amend=result.was_amend,
    )
