import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from formflow.core.config import settings
from formflow.core.errors import PersistenceFailure
from formflow.db import models  # noqa: F401  registers the mappers on Base
from formflow.db.base import Base

logger = logging.getLogger(__name__)

connect_args = {}
backend = make_url(settings.DATABASE_URL).get_backend_name()
if backend.startswith("postgresql"):
    connect_args["options"] = "-c timezone=utc"
elif backend == "sqlite":
    connect_args["check_same_thread"] = False

engine = create_engine(
    settings.DATABASE_URL, pool_pre_ping=True, connect_args=connect_args
)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db(bind: Engine | None = None) -> None:
    """Create any missing tables. Existing tables are left untouched."""
    Base.metadata.create_all(bind or engine)
    logger.info("database_initialized")


def commit_or_fail(db: Session, action: str) -> None:
    """Commit, translating store errors into ``PersistenceFailure``."""
    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.warning("commit_failed", extra={"action": action}, exc_info=True)
        raise PersistenceFailure(f"Could not {action}") from exc


@contextmanager
def store_errors(db: Session, action: str) -> Iterator[None]:
    """Roll back and raise ``PersistenceFailure`` on any store error in the block."""
    try:
        yield
    except SQLAlchemyError as exc:
        db.rollback()
        logger.warning("store_failed", extra={"action": action}, exc_info=True)
        raise PersistenceFailure(f"Could not {action}") from exc
