"""Respondent-side review window before a submission is committed.

State machine::

    Idle --submit--> Pending(remaining) --tick to zero--> Committing --> Committed
                        |                                     |
                        +--cancel--> Cancelled --> Idle       +--failure--> Idle

The sequencer never owns a timer. ``submit``, ``cancel`` and ``tick`` are the
only inputs; each returns the transition events it produced, and the single
owner (UI loop, ``run_countdown``) consumes them.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Protocol

from formflow.core.config import settings
from formflow.core.errors import PersistenceFailure
from formflow.db.enums import FormActivityType, SequencerEventType, SequencerState
from formflow.services.gate_service import GateResult

logger = logging.getLogger(__name__)


class SequencerStateError(RuntimeError):
    """Input not accepted in the current state."""


@dataclass(frozen=True)
class CommitRejected:
    """The commit path refused the held answers (gate closed or invalid answers)."""

    gate: GateResult | None = None
    errors: dict[str, str] | None = field(default=None, hash=False)


@dataclass(frozen=True)
class SequencerEvent:
    type: SequencerEventType
    result: Any = None
    error: Exception | None = None
    rejection: CommitRejected | None = None

    @property
    def retryable(self) -> bool:
        return self.type == SequencerEventType.FAILED and self.error is not None


class CommitPorts(Protocol):
    """Collaborators the sequencer calls at transition points."""

    def gate_check(self) -> GateResult:
        ...

    def record(self, event_type: FormActivityType, details: dict[str, Any] | None = None) -> None:
        ...

    def resolve(self, answers: dict[str, Any]) -> Any:
        """Persist answers. Returns a receipt, or CommitRejected.

        Raises PersistenceFailure when the store is unavailable.
        """
        ...


class CommitSequencer:
    def __init__(self, ports: CommitPorts, duration: float | None = None) -> None:
        self.ports = ports
        self.duration = (
            settings.review_window.total_seconds() if duration is None else max(0.0, duration)
        )
        self.state = SequencerState.IDLE
        self.remaining = 0.0
        self.held_answers: dict[str, Any] | None = None
        self.result: Any = None
        self.last_error: Exception | None = None

    def submit(self, answers: dict[str, Any]) -> list[SequencerEvent]:
        """Start a countdown for validated, visibility-filtered answers."""
        if self.state in (SequencerState.COMMITTING, SequencerState.COMMITTED):
            raise SequencerStateError(f"Cannot submit while {self.state.value}")

        events: list[SequencerEvent] = []
        if self.state == SequencerState.PENDING:
            events.extend(self._cancel(reason="replaced"))

        try:
            gate = self.ports.gate_check()
        except PersistenceFailure as exc:
            self.last_error = exc
            self.held_answers = dict(answers)
            events.append(SequencerEvent(type=SequencerEventType.FAILED, error=exc))
            return events
        if not gate.allowed:
            self.held_answers = None
            events.append(
                SequencerEvent(
                    type=SequencerEventType.FAILED,
                    rejection=CommitRejected(gate=gate),
                )
            )
            return events

        self.held_answers = dict(answers)
        self.last_error = None
        self.state = SequencerState.PENDING
        self.remaining = self.duration
        # Recorded even if the respondent later cancels
        self._record(FormActivityType.SUBMISSION_INITIATED, {"review_seconds": self.duration})
        events.append(SequencerEvent(type=SequencerEventType.INITIATED))

        if self.remaining <= 0:
            events.extend(self._commit())
        return events

    def cancel(self) -> list[SequencerEvent]:
        """Retract the pending submission. No-op outside Pending."""
        if self.state != SequencerState.PENDING:
            return []
        return self._cancel(reason="user")

    def tick(self, elapsed: float) -> list[SequencerEvent]:
        if self.state != SequencerState.PENDING:
            return []
        self.remaining = max(0.0, self.remaining - elapsed)
        if self.remaining > 0:
            return []
        return self._commit()

    def retry(self) -> list[SequencerEvent]:
        """Start a new countdown with the answers held from a failed commit."""
        if self.state != SequencerState.IDLE or self.held_answers is None:
            raise SequencerStateError("Nothing to retry")
        return self.submit(self.held_answers)

    def _record(self, event_type: FormActivityType, details: dict[str, Any]) -> None:
        try:
            self.ports.record(event_type, details)
        except PersistenceFailure:
            logger.warning(
                "sequencer_activity_failed", extra={"event_type": event_type.value}, exc_info=True
            )

    def _cancel(self, reason: str) -> list[SequencerEvent]:
        self._record(FormActivityType.SUBMISSION_UNDONE, {"reason": reason})
        self.state = SequencerState.CANCELLED
        self.held_answers = None
        self.remaining = 0.0
        event = SequencerEvent(type=SequencerEventType.CANCELLED)
        self.state = SequencerState.IDLE
        return [event]

    def _commit(self) -> list[SequencerEvent]:
        self.state = SequencerState.COMMITTING
        answers = self.held_answers or {}
        try:
            outcome = self.ports.resolve(answers)
        except PersistenceFailure as exc:
            # Answers stay held; the countdown is not restarted
            self.state = SequencerState.IDLE
            self.last_error = exc
            logger.warning("commit_sequence_failed", exc_info=True)
            return [SequencerEvent(type=SequencerEventType.FAILED, error=exc)]

        if isinstance(outcome, CommitRejected):
            self.state = SequencerState.IDLE
            return [SequencerEvent(type=SequencerEventType.FAILED, rejection=outcome)]

        self.state = SequencerState.COMMITTED
        self.result = outcome
        return [SequencerEvent(type=SequencerEventType.COMMITTED, result=outcome)]


async def run_countdown(
    sequencer: CommitSequencer,
    on_event: Callable[[SequencerEvent], None] | None = None,
    tick_seconds: float = 1.0,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> list[SequencerEvent]:
    """Drive a pending sequencer with one cooperative tick source.

    Stops once the sequencer leaves Pending, whether by commit, failure or a
    ``cancel()`` issued by the owner between ticks.
    """
    events: list[SequencerEvent] = []
    last = clock()
    while sequencer.state == SequencerState.PENDING:
        await sleep(tick_seconds)
        now = clock()
        produced = sequencer.tick(now - last)
        last = now
        for event in produced:
            events.append(event)
            if on_event:
                on_event(event)
    return events
