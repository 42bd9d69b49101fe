"""Admission gate for new submissions.

``evaluate_gate`` is called twice per respondent: by the public read endpoint
(to decide whether to render the form at all) and again on submit, right
before persistence.
"""

from __future__ import annotations

import hashlib
import hmac
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol
from uuid import UUID

from formflow.core.config import settings as app_settings
from formflow.db.enums import FormStatus, FormVisibility, GateStatus
from formflow.db.types import ensure_utc

GATE_REASONS: dict[GateStatus, str] = {
    GateStatus.ALREADY_SUBMITTED: "You have already submitted a response to this form.",
    GateStatus.CLOSED: "The creator has closed this form.",
    GateStatus.DEACTIVATED: "The creator has temporarily disabled this form.",
    GateStatus.EXPIRED: "This form has expired and is no longer available.",
    GateStatus.LIMIT_REACHED: "This form has reached its maximum number of responses.",
}


class GateSettings(Protocol):
    """Settings fields the gate reads. Satisfied by ``Form`` and ``FormSettings``."""

    is_active: bool
    expiry_date: datetime | None
    max_responses: int | None
    single_submission: bool
    closed_message: str
    status: str
    visibility: str
    password: str


@dataclass(frozen=True)
class GateResult:
    status: GateStatus
    reason: str | None = None
    message: str | None = None

    @property
    def allowed(self) -> bool:
        return self.status == GateStatus.ALLOWED


ALLOWED = GateResult(status=GateStatus.ALLOWED)


def _reject(status: GateStatus, form_settings: GateSettings) -> GateResult:
    return GateResult(
        status=status,
        reason=GATE_REASONS[status],
        message=form_settings.closed_message,
    )


def evaluate_gate(
    form_settings: GateSettings,
    response_count: int,
    now: datetime,
    prior_marker: str | None = None,
) -> GateResult:
    """Decide whether a new submission may be admitted.

    First match wins: already submitted, closed, deactivated, expired, limit
    reached. The requester-specific check runs first so a respondent who has
    a completed record is told so rather than seeing a global closure.
    """
    if form_settings.single_submission and prior_marker:
        return _reject(GateStatus.ALREADY_SUBMITTED, form_settings)
    if FormStatus(form_settings.status) == FormStatus.CLOSED:
        return _reject(GateStatus.CLOSED, form_settings)
    if not form_settings.is_active:
        return _reject(GateStatus.DEACTIVATED, form_settings)
    expiry = form_settings.expiry_date
    if expiry is not None and ensure_utc(now) >= ensure_utc(expiry):
        return _reject(GateStatus.EXPIRED, form_settings)
    max_responses = form_settings.max_responses or 0
    if max_responses > 0 and response_count >= max_responses:
        return _reject(GateStatus.LIMIT_REACHED, form_settings)
    return ALLOWED


def is_accepting(form_settings: GateSettings, response_count: int, now: datetime) -> bool:
    """Form-level acceptance, ignoring any requester marker."""
    return evaluate_gate(form_settings, response_count, now).allowed


# =============================================================================
# Password unlock (form-global, checked before the gate)
# =============================================================================


def requires_unlock(form_settings: GateSettings) -> bool:
    return FormVisibility(form_settings.visibility) == FormVisibility.PASSWORD_PROTECTED


def make_unlock_token(form_id: UUID, password: str) -> str:
    """Opaque token proving the password was entered for this form.

    Bound to the current password, so changing it invalidates old unlocks.
    """
    message = f"{form_id}:{password}".encode()
    return hmac.new(app_settings.SECRET_KEY.encode(), message, hashlib.sha256).hexdigest()


def check_password(form_settings: GateSettings, candidate: str) -> bool:
    return hmac.compare_digest(form_settings.password.encode(), candidate.encode())


def is_unlocked(form_settings: GateSettings, form_id: UUID, token: str | None) -> bool:
    if not requires_unlock(form_settings):
        return True
    if not token:
        return False
    expected = make_unlock_token(form_id, form_settings.password)
    return hmac.compare_digest(expected, token)
