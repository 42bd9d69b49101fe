"""Tests for the form activity log."""

import uuid
from datetime import timedelta

import pytest

from formflow.db.enums import FormActivityType
from formflow.services import activity_service


def test_form_creation_is_logged(db, published_form):
    entries = activity_service.list_activity(db, published_form.id)

    assert [e.event_type for e in entries] == [FormActivityType.CREATED.value]
    assert entries[0].description == "Form 'Contact' created"


def test_activity_is_newest_first(db, published_form, now):
    for minutes in (3, 1, 2):
        activity_service.record(
            db,
            published_form.id,
            FormActivityType.RESPONSE_RECEIVED,
            f"event at {minutes}",
            timestamp=now + timedelta(minutes=minutes),
        )
    db.commit()

    entries = [
        e
        for e in activity_service.list_activity(db, published_form.id)
        if e.event_type == FormActivityType.RESPONSE_RECEIVED.value
    ]

    assert [e.description for e in entries] == ["event at 3", "event at 2", "event at 1"]


def test_same_timestamp_lists_latest_append_first(db, published_form, now):
    activity_service.log_submission_initiated(db, published_form.id)
    activity_service.record(
        db,
        published_form.id,
        FormActivityType.SUBMISSION_UNDONE,
        "second",
        timestamp=now,
    )
    activity_service.record(
        db,
        published_form.id,
        FormActivityType.SUBMISSION_INITIATED,
        "third",
        timestamp=now,
    )
    db.commit()

    descriptions = [
        e.description
        for e in activity_service.list_activity(db, published_form.id)
        if e.timestamp == now
    ]

    assert descriptions == ["third", "second"]


def test_activity_is_capped_at_page_size(db, published_form, now):
    for i in range(60):
        activity_service.record(
            db,
            published_form.id,
            FormActivityType.RESPONSE_RECEIVED,
            f"event {i}",
            timestamp=now + timedelta(seconds=i),
        )
    db.commit()

    assert len(activity_service.list_activity(db, published_form.id)) == 50
    assert len(activity_service.list_activity(db, published_form.id, limit=500)) == 50
    assert len(activity_service.list_activity(db, published_form.id, limit=5)) == 5


def test_unknown_event_type_is_rejected(db, published_form):
    with pytest.raises(ValueError):
        activity_service.record(db, published_form.id, "deleted", "not an activity type")


def test_settings_update_stores_field_names_only(db, published_form):
    entry = activity_service.log_settings_updated(
        db, published_form.id, ["password", "max_responses"]
    )

    assert entry.details == {"changed": ["max_responses", "password"]}


def test_final_submission_descriptions(db, published_form):
    submission_id = uuid.uuid4()
    new = activity_service.log_final_submission_saved(db, published_form.id, submission_id, False)
    amend = activity_service.log_final_submission_saved(db, published_form.id, submission_id, True)

    assert new.description == "New response submitted"
    assert amend.description == "Response updated within edit window"
    assert amend.details == {"submission_id": str(submission_id), "was_amend": True}
