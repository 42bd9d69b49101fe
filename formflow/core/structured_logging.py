"""Structured logging helpers (PHI-safe)."""

from typing import Any
from uuid import UUID


def build_log_context(
    *,
    form_id: UUID | str | None = None,
    submission_id: UUID | str | None = None,
    request_id: str | None = None,
    route: str | None = None,
    method: str | None = None,
) -> dict[str, Any]:
    """Return a PHI-safe log context dict.

    Answers, IP addresses and user agents are never included.
    """
    context: dict[str, Any] = {}
    if form_id:
        context["form_id"] = str(form_id)
    if submission_id:
        context["submission_id"] = str(submission_id)
    if request_id:
        context["request_id"] = request_id
    if route:
        context["route"] = route
    if method:
        context["method"] = method
    return context
