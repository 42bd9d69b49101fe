"""Tests for table creation against an empty database."""

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import create_engine, inspect
from sqlalchemy.orm import sessionmaker

import formflow.main as main_module
from formflow.core.deps import get_db
from formflow.db.session import init_db
from formflow.main import app


@pytest.fixture
def fresh_engine(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'fresh.db'}", connect_args={"check_same_thread": False}
    )
    yield engine
    engine.dispose()


def test_init_db_creates_tables(fresh_engine):
    init_db(fresh_engine)

    tables = set(inspect(fresh_engine).get_table_names())
    assert {"forms", "submissions", "form_activities"} <= tables


def test_init_db_is_repeatable(fresh_engine):
    init_db(fresh_engine)
    init_db(fresh_engine)

    assert "forms" in inspect(fresh_engine).get_table_names()


@pytest.mark.asyncio
async def test_startup_creates_tables_then_form_can_be_saved(fresh_engine, monkeypatch):
    monkeypatch.setattr(main_module, "engine", fresh_engine)
    session = sessionmaker(autocommit=False, autoflush=False, bind=fresh_engine)()

    def override_get_db():
        yield session

    app.dependency_overrides[get_db] = override_get_db
    try:
        async with app.router.lifespan_context(app):
            async with AsyncClient(
                transport=ASGITransport(app=app), base_url="http://test"
            ) as client:
                response = await client.post("/forms", json={"title": "Fresh"})
    finally:
        app.dependency_overrides.clear()
        session.close()

    assert response.status_code == 201
    assert response.json()["title"] == "Fresh"
