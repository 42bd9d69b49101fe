"""HTTP client for the public form API.

``FormSubmissionClient`` implements the commit sequencer ports, so a
respondent-side program can run a ``CommitSequencer`` against a remote server::

    with FormSubmissionClient("https://forms.example.com", form_id) as client:
        sequencer = CommitSequencer(client)
        sequencer.submit(answers)
        asyncio.run(run_countdown(sequencer))

Cookies (password unlock, prior-submission marker) are kept on the underlying
``httpx.Client`` between calls.
"""

from __future__ import annotations

import logging
from typing import Any
from uuid import UUID

import httpx

from formflow.core.errors import FormNotFound, PersistenceFailure
from formflow.db.enums import FormActivityType, GateStatus
from formflow.schemas.forms import FormPublicRead
from formflow.schemas.submissions import SubmissionResultRead
from formflow.services.commit_sequencer import CommitRejected
from formflow.services.gate_service import GateResult
from formflow.services.submission_service import ResolveResult

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0

_EVENT_NAMES = {
    FormActivityType.SUBMISSION_INITIATED: "initiated",
    FormActivityType.SUBMISSION_UNDONE: "undone",
}


class FormSubmissionClient:
    def __init__(
        self,
        base_url: str,
        form_id: UUID,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.form_id = form_id
        self._http = httpx.Client(base_url=base_url, timeout=timeout, transport=transport)

    def __enter__(self) -> "FormSubmissionClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        self._http.close()

    @property
    def _path(self) -> str:
        return f"/forms/public/{self.form_id}"

    def _send(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        """Issue a request. Transport errors and 5xx become PersistenceFailure."""
        try:
            response = self._http.request(method, path, **kwargs)
        except httpx.TransportError as exc:
            logger.warning(
                "form_api_unreachable", extra={"form_id": str(self.form_id)}, exc_info=True
            )
            raise PersistenceFailure("Form service unreachable") from exc
        if response.status_code == 404:
            raise FormNotFound(str(self.form_id))
        if response.status_code >= 500:
            logger.warning(
                "form_api_error",
                extra={"form_id": str(self.form_id), "status_code": response.status_code},
            )
            raise PersistenceFailure(f"Form service returned {response.status_code}")
        return response

    def fetch_form(self) -> FormPublicRead:
        response = self._send("GET", self._path)
        response.raise_for_status()
        return FormPublicRead.model_validate(response.json())

    def unlock(self, password: str) -> bool:
        """Submit the form password. Returns False when it is rejected."""
        response = self._send("POST", f"{self._path}/unlock", json={"password": password})
        if response.status_code == 401:
            return False
        response.raise_for_status()
        return True

    # -------------------------------------------------------------------------
    # Commit sequencer ports
    # -------------------------------------------------------------------------

    def gate_check(self) -> GateResult:
        gate = self.fetch_form().gate
        return GateResult(status=gate.status, reason=gate.reason, message=gate.message)

    def record(self, event_type: FormActivityType, details: dict[str, Any] | None = None) -> None:
        response = self._send(
            "POST",
            f"{self._path}/events",
            json={"event": _EVENT_NAMES[event_type], "details": details},
        )
        response.raise_for_status()

    def resolve(self, answers: dict[str, Any]) -> ResolveResult | CommitRejected:
        response = self._send("POST", f"{self._path}/submit", json={"answers": answers})

        if response.status_code == 401:
            return CommitRejected(errors={"password": "Password required"})
        if response.status_code == 403:
            detail = response.json().get("detail") or {}
            return CommitRejected(
                gate=GateResult(
                    status=GateStatus(detail.get("status", GateStatus.CLOSED.value)),
                    reason=detail.get("reason"),
                    message=detail.get("message"),
                )
            )
        if response.status_code == 422:
            detail = response.json().get("detail")
            if isinstance(detail, dict) and "errors" in detail:
                return CommitRejected(errors=detail["errors"])
            return CommitRejected(errors={"answers": "Invalid submission"})
        response.raise_for_status()

        receipt = SubmissionResultRead.model_validate(response.json())
        return ResolveResult(
            submission_id=receipt.submission_id,
            submitted_at=receipt.submitted_at,
            was_amend=receipt.was_amend,
        )
