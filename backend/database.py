# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""
SQLAlchemy engine, session factory, declarative base, and the FastAPI
dependency that provides a transactional DB session per request.

The lifecycle policy in ``core.audit`` is attached to every Session created
here (and to any other Session) at import time, so timestamps, soft-delete
bookkeeping and the OTP guard apply to all write paths.
"""

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker, declarative_base

from core.config import settings

Base = declarative_base()


@event.listens_for(Engine, "connect")
def _enable_sqlite_foreign_keys(dbapi_conn, _record):
    """
    SQLite ignores ON DELETE/ON UPDATE rules unless the pragma is set on
    every new connection.  Other backends enforce them natively.
    """
    if type(dbapi_conn).__module__.startswith("sqlite3"):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def make_engine(url: str):
    # pool_pre_ping keeps idle connections alive across MySQL's wait_timeout
    return create_engine(url, pool_pre_ping=True)


engine = make_engine(settings.database_url)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Registers the session-level policy hooks
import core.audit  # noqa: F401, E402


def get_db():
    """
    FastAPI dependency.  Yields a session for the duration of the request,
    then closes it.  Use with Depends(get_db).
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def commit_or_raise(db, error):
    """
    Commit the session.  A unique-constraint violation that slipped past the
    caller's pre-check (concurrent insert) is rolled back and re-raised as
    *error*, a domain exception instance.
    """
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise error from exc
