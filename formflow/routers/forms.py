"""Form builder endpoints: definitions, settings, activity and responses."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from formflow.core.config import settings
from formflow.core.deps import get_db
from formflow.core.errors import ConfigurationError
from formflow.db.models import Form
from formflow.schemas.forms import FormActivityRead, FormCreate, FormRead, FormUpdate
from formflow.schemas.submissions import FormAnalyticsRead, SubmissionRead
from formflow.services import activity_service, analytics_service, form_service, submission_service

router = APIRouter(prefix="/forms", tags=["forms"])


def _form_read(form: Form) -> FormRead:
    return FormRead(
        id=form.id,
        title=form.title,
        description=form.description,
        fields=form_service.get_fields(form),
        settings=form_service.get_settings(form),
        created_at=form.created_at,
        updated_at=form.updated_at,
    )


@router.post("", response_model=FormRead, status_code=201)
def create_form(body: FormCreate, db: Session = Depends(get_db)):
    try:
        form = form_service.create_form(
            db,
            title=body.title,
            description=body.description,
            fields=body.fields,
            form_settings=body.settings,
            creator_id=body.creator_id,
        )
    except ConfigurationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return _form_read(form)


@router.get("/{form_id}", response_model=FormRead)
def get_form(form_id: UUID, db: Session = Depends(get_db)):
    return _form_read(form_service.get_form_or_raise(db, form_id))


@router.patch("/{form_id}", response_model=FormRead)
def update_form(form_id: UUID, body: FormUpdate, db: Session = Depends(get_db)):
    form = form_service.get_form_or_raise(db, form_id)
    try:
        form = form_service.update_form(
            db,
            form,
            title=body.title,
            description=body.description,
            fields=body.fields,
            settings_update=body.settings,
        )
    except ConfigurationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return _form_read(form)


@router.get("/{form_id}/activity", response_model=list[FormActivityRead])
def list_form_activity(
    form_id: UUID,
    limit: int = Query(settings.ACTIVITY_PAGE_SIZE, ge=1, le=settings.ACTIVITY_PAGE_SIZE),
    db: Session = Depends(get_db),
):
    form_service.get_form_or_raise(db, form_id)
    return activity_service.list_activity(db, form_id, limit=limit)


@router.get("/{form_id}/submissions", response_model=list[SubmissionRead])
def list_form_submissions(
    form_id: UUID,
    limit: int = Query(200, ge=1, le=1000),
    db: Session = Depends(get_db),
):
    form_service.get_form_or_raise(db, form_id)
    return submission_service.list_submissions(db, form_id, limit=limit)


@router.get("/{form_id}/analytics", response_model=FormAnalyticsRead)
def get_form_analytics(form_id: UUID, db: Session = Depends(get_db)):
    form = form_service.get_form_or_raise(db, form_id)
    submissions = submission_service.list_submissions(db, form_id, limit=None)
    return FormAnalyticsRead(
        response_count=len(submissions),
        device_breakdown=analytics_service.device_breakdown(s.device_type for s in submissions),
        fields=analytics_service.summarize_choice_fields(
            form_service.get_fields(form), [s.answers_json for s in submissions]
        ),
    )
