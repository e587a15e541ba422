import os

# Settings are read at import time; configure before anything from backend/ loads.
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret-key-not-for-production")
os.environ.setdefault("PASSWORD_HASH_ROUNDS", "1000")
os.environ.setdefault("RATE_LIMIT_REQUESTS", "100000")

from datetime import datetime, timedelta, timezone  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

import models.otp_token  # noqa: F401, E402
import models.permission  # noqa: F401, E402
import models.role  # noqa: F401, E402
import models.role_permission  # noqa: F401, E402
import models.user  # noqa: F401, E402
import models.user_role  # noqa: F401, E402
import models.user_token  # noqa: F401, E402
from core import audit  # noqa: E402
from credentials.tokens import issue_token  # noqa: E402
from database import Base, get_db  # noqa: E402
from rbac.seed import seed_defaults  # noqa: E402
from rbac.service import assign_role, get_role_by_code  # noqa: E402
from users.service import create_user  # noqa: E402


class FrozenClock:
    """Stand-in for ``core.audit.utcnow`` that only moves when told to."""

    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock(monkeypatch):
    c = FrozenClock(datetime(2026, 3, 1, 9, 0, 0, tzinfo=timezone.utc))
    monkeypatch.setattr(audit, "utcnow", c)
    return c


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(eng)
    yield eng
    Base.metadata.drop_all(eng)
    eng.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(bind=engine, autocommit=False, autoflush=False)()
    seed_defaults(session)
    yield session
    session.close()


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    def _make(email=None, role_code=None, **kwargs):
        counter["n"] += 1
        email = email or f"user{counter['n']}@example.com"
        user = create_user(db, email=email, password=kwargs.pop("password", "s3cret-pass"), **kwargs)
        if role_code:
            assign_role(db, user.id, get_role_by_code(db, role_code).id)
        return user

    return _make


@pytest.fixture
def client(db):
    from main import app

    def _override_get_db():
        yield db

    app.dependency_overrides[get_db] = _override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def admin_headers(db, make_user):
    admin = make_user(email="admin@example.com", role_code="ADMIN", is_admin=True)
    _, raw = issue_token(db, user_id=admin.id)
    return {"Authorization": f"Bearer {raw}"}


@pytest.fixture
def member(db, make_user):
    """A regular account holding only the USER role, with a live token."""
    user = make_user(email="member@example.com", role_code="USER")
    _, raw = issue_token(db, user_id=user.id)
    return user, {"Authorization": f"Bearer {raw}"}
