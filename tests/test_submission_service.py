"""Tests for the submission resolver (create vs amend within the edit window)."""

from datetime import timedelta

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from formflow.core.errors import PersistenceFailure
from formflow.db.enums import DeviceType, FormActivityType
from formflow.db.models import Submission
from formflow.services import activity_service, submission_service
from formflow.services.submission_service import (
    Fingerprint,
    SubmissionMetadata,
    resolve_submission,
)

FP = Fingerprint(ip_address="203.0.113.7", user_agent="Mozilla/5.0 (X11; Linux x86_64)")
OTHER_FP = Fingerprint(ip_address="203.0.113.8", user_agent="Mozilla/5.0 (X11; Linux x86_64)")


def _submissions(db: Session, form_id) -> list[Submission]:
    return db.query(Submission).filter(Submission.form_id == form_id).all()


def _saved_events(db: Session, form_id):
    return [
        a
        for a in activity_service.list_activity(db, form_id)
        if a.event_type == FormActivityType.FINAL_SUBMISSION_SAVED.value
    ]


def test_resubmission_amends_within_window_then_creates_after(db, published_form, now):
    form_id = published_form.id

    first = resolve_submission(db, form_id, FP, {"name": "Ada"}, now=now)
    amended = resolve_submission(
        db, form_id, FP, {"name": "Ada L."}, now=now + timedelta(minutes=5)
    )
    later = resolve_submission(
        db, form_id, FP, {"name": "Ada Lovelace"}, now=now + timedelta(minutes=11)
    )

    assert not first.was_amend
    assert amended.was_amend
    assert amended.submission_id == first.submission_id
    assert amended.submitted_at == now
    assert not later.was_amend
    assert later.submission_id != first.submission_id
    assert later.submitted_at == now + timedelta(minutes=11)

    stored = {s.id: s for s in _submissions(db, form_id)}
    assert len(stored) == 2
    assert stored[first.submission_id].answers_json == {"name": "Ada L."}
    assert stored[first.submission_id].submitted_at == now


def test_edit_window_is_half_open(db, published_form, now):
    form_id = published_form.id
    first = resolve_submission(db, form_id, FP, {"name": "a"}, now=now)

    inside = resolve_submission(
        db, form_id, FP, {"name": "b"}, now=now + timedelta(minutes=10) - timedelta(seconds=1)
    )
    at_boundary = resolve_submission(
        db, form_id, FP, {"name": "c"}, now=now + timedelta(minutes=10)
    )

    assert inside.submission_id == first.submission_id
    assert at_boundary.submission_id != first.submission_id
    assert first.edit_deadline == now + timedelta(minutes=10)


def test_amending_does_not_extend_window(db, published_form, now):
    form_id = published_form.id
    first = resolve_submission(db, form_id, FP, {"name": "a"}, now=now)
    resolve_submission(db, form_id, FP, {"name": "b"}, now=now + timedelta(minutes=9))

    third = resolve_submission(db, form_id, FP, {"name": "c"}, now=now + timedelta(minutes=12))

    assert third.submission_id != first.submission_id


def test_different_fingerprint_creates_new_record(db, published_form, now):
    form_id = published_form.id
    first = resolve_submission(db, form_id, FP, {"name": "a"}, now=now)
    second = resolve_submission(
        db, form_id, OTHER_FP, {"name": "b"}, now=now + timedelta(minutes=1)
    )

    assert second.submission_id != first.submission_id
    assert submission_service.get_response_count(db, form_id) == 2


def test_amend_keeps_original_metadata(db, published_form, now):
    form_id = published_form.id
    metadata = SubmissionMetadata(
        device_type=DeviceType.DESKTOP, location={"latitude": 1.0, "longitude": 2.0}
    )
    first = resolve_submission(db, form_id, FP, {"name": "a"}, metadata=metadata, now=now)
    resolve_submission(db, form_id, FP, {"name": "b"}, now=now + timedelta(minutes=1))

    stored = submission_service.get_submission(db, form_id, first.submission_id)
    assert stored.device_type == DeviceType.DESKTOP.value
    assert stored.location_json == {"latitude": 1.0, "longitude": 2.0}


def test_saved_event_logged_after_each_write(db, published_form, now):
    form_id = published_form.id
    resolve_submission(db, form_id, FP, {"name": "a"}, now=now)
    resolve_submission(db, form_id, FP, {"name": "b"}, now=now + timedelta(minutes=1))

    events = _saved_events(db, form_id)

    assert [e.description for e in events] == [
        "Response updated within edit window",
        "New response submitted",
    ]
    assert events[0].details["was_amend"] is True


def test_store_failure_raises_and_leaves_no_trace(db, published_form, now, monkeypatch):
    form_id = published_form.id

    def failing_commit():
        raise OperationalError("COMMIT", {}, Exception("database is down"))

    monkeypatch.setattr(db, "commit", failing_commit)

    with pytest.raises(PersistenceFailure):
        resolve_submission(db, form_id, FP, {"name": "a"}, now=now)

    monkeypatch.undo()
    assert _submissions(db, form_id) == []
    assert _saved_events(db, form_id) == []


def test_activity_failure_does_not_undo_submission(db, published_form, now, monkeypatch):
    form_id = published_form.id
    real_commit = db.commit
    calls = []

    def flaky_commit():
        calls.append(1)
        if len(calls) == 2:
            raise OperationalError("COMMIT", {}, Exception("database is down"))
        real_commit()

    monkeypatch.setattr(db, "commit", flaky_commit)

    result = resolve_submission(db, form_id, FP, {"name": "a"}, now=now)

    monkeypatch.undo()
    assert not result.was_amend
    assert [s.id for s in _submissions(db, form_id)] == [result.submission_id]
    assert _saved_events(db, form_id) == []


def test_find_recent_by_fingerprint_returns_newest(db, published_form, now):
    form_id = published_form.id
    resolve_submission(db, form_id, FP, {"name": "a"}, now=now)
    newer = resolve_submission(db, form_id, FP, {"name": "b"}, now=now + timedelta(minutes=20))

    found = submission_service.find_recent_by_fingerprint(
        db, form_id, FP, now + timedelta(minutes=15)
    )

    assert found.id == newer.submission_id
