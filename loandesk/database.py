"""Database configuration for the ledger service."""
from __future__ import annotations

import logging
import os
from contextlib import contextmanager
from pathlib import Path
from typing import Generator, Iterator

from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, declarative_base, sessionmaker

logger = logging.getLogger(__name__)

DEFAULT_SQLITE_PATH = Path("data/loandesk.db")
DEFAULT_SQLITE_PATH.parent.mkdir(parents=True, exist_ok=True)

DATABASE_URL = os.getenv("LOANDESK_DATABASE_URL", f"sqlite:///{DEFAULT_SQLITE_PATH}")


def _enable_sqlite_foreign_keys(dbapi_conn, connection_record) -> None:
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def _create_engine(url: str):
    """Create a SQLAlchemy engine for the given URL, handling sqlite connect args.

    SQLite only enforces foreign keys when asked to on each connection.
    """
    if not url.startswith("sqlite"):
        return create_engine(url, future=True)
    new_engine = create_engine(url, connect_args={"check_same_thread": False}, future=True)
    event.listen(new_engine, "connect", _enable_sqlite_foreign_keys)
    return new_engine


# Smoke-check the configured database. In development an unreachable server
# falls back to the local SQLite file; anywhere else startup fails loudly.
try:
    engine = _create_engine(DATABASE_URL)
    with engine.connect() as _conn:  # type: ignore[var-annotated]
        pass
except Exception as e:  # pragma: no cover - environment dependent
    env = os.getenv("ENVIRONMENT", "development").lower()
    logger.warning("Could not connect to database at %r: %s", DATABASE_URL, e)
    if env == "development":
        fallback = f"sqlite:///{DEFAULT_SQLITE_PATH}"
        logger.warning("Falling back to SQLite for local development at %s", fallback)
        DATABASE_URL = fallback
        engine = _create_engine(DATABASE_URL)
    else:
        raise

SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)

Base = declarative_base()


def get_session() -> Generator[Session, None, None]:
    """FastAPI dependency that yields a database session."""

    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@contextmanager
def unit_of_work(db: Session) -> Iterator[Session]:
    """Commit the block's writes together, or roll all of them back.

    Ledger mutations touch a transaction row and its aggregate; both must land
    or neither does. Any exception raised inside the block (rule violations
    included) rolls the session back before propagating.
    """
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise


def init_db() -> None:
    """Ensure database tables exist."""

    from loandesk import models  # noqa: F401  (import ensures model metadata is registered)

    Base.metadata.create_all(bind=engine, checkfirst=True)
    logger.info("Ledger schema ready on %s", engine.url.render_as_string(hide_password=True))
