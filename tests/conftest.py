"""
Test configuration and fixtures.

Provides:
- In-memory SQLite session per test (tables created from the models)
- HTTPX AsyncClient wired to the app with the session injected
- Form factory for published forms
"""
import os
from datetime import datetime, timezone
from typing import AsyncGenerator, Callable, Generator

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

# Must be set before formflow.core.config is imported
os.environ["TESTING"] = "1"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ENV"] = "dev"

from formflow.core.deps import get_db  # noqa: E402
from formflow.db import models  # noqa: E402,F401
from formflow.db.base import Base  # noqa: E402
from formflow.db.enums import FormStatus  # noqa: E402
from formflow.db.models import Form  # noqa: E402
from formflow.main import app  # noqa: E402
from formflow.schemas.forms import FormField, FormSettings  # noqa: E402
from formflow.services import form_service  # noqa: E402


# =============================================================================
# Database Fixtures
# =============================================================================

@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """
    Creates a fresh in-memory database for each test.

    StaticPool keeps one connection so the threadpool used by sync endpoints
    sees the same database as the test body.
    """
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()

    yield session

    session.close()
    Base.metadata.drop_all(engine)
    engine.dispose()


# =============================================================================
# Form Fixtures
# =============================================================================

CONTACT_FIELDS = [
    {"id": "name", "type": "text", "label": "Name", "required": True},
    {"id": "email", "type": "email", "label": "Email", "required": True},
    {
        "id": "plan",
        "type": "radio",
        "label": "Plan",
        "options": ["Basic", "Pro"],
    },
]


@pytest.fixture(scope="function")
def make_form(db: Session) -> Callable[..., Form]:
    """Factory for live forms. Keyword arguments override FormSettings."""

    def _make(fields: list[dict] | None = None, title: str = "Contact", **overrides) -> Form:
        overrides.setdefault("status", FormStatus.LIVE)
        return form_service.create_form(
            db,
            title=title,
            fields=[FormField.model_validate(f) for f in (fields or CONTACT_FIELDS)],
            form_settings=FormSettings(**overrides),
        )

    return _make


@pytest.fixture(scope="function")
def published_form(make_form) -> Form:
    return make_form()


@pytest.fixture
def now() -> datetime:
    return datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


# =============================================================================
# Client Fixtures
# =============================================================================

@pytest.fixture(scope="function")
async def client(db: Session) -> AsyncGenerator[AsyncClient, None]:
    """
    Create AsyncClient for testing builder and public endpoints.
    """
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as c:
        yield c

    app.dependency_overrides.clear()
