# tests/conftest.py
# PURPOSE: TestClients over a temp SQLite file, with the DB and session-factory dependencies overridden.

# Ensure project root is on sys.path so `import todo_calendar` works when running pytest.
import sys, os

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

# No periodic calendar scans while tests run
os.environ.setdefault("CALENDAR_AUTO_SYNC", "false")

import tempfile
import pytest
from cryptography.fernet import Fernet
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from fastapi.testclient import TestClient

from todo_calendar.auth import get_current_user
from todo_calendar.db import Base, get_db, get_session_factory  # DB metadata + dependencies to override
from todo_calendar import db_models  # noqa: F401  (registers tables)
from todo_calendar.main import app  # FastAPI app
from todo_calendar.models import UserPublic
from todo_calendar.rate_limit import limiter
from todo_calendar.store_db import create_or_update_user

TEST_USER = UserPublic(id="user-1", email="test@example.com", display_name="Test User")


@pytest.fixture()
def session_factory():
    # 1) Temporary SQLite file so data is isolated per test
    tmp = tempfile.NamedTemporaryFile(suffix=".db", delete=False)
    tmp.close()
    engine = create_engine(f"sqlite:///{tmp.name}", connect_args={"check_same_thread": False})
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    # 2) Create tables
    Base.metadata.create_all(bind=engine)

    yield TestingSessionLocal

    # 3) Cleanup: drop tables, dispose engine, delete temp file
    Base.metadata.drop_all(bind=engine)
    engine.dispose()
    os.unlink(tmp.name)


@pytest.fixture()
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def encryption_key():
    return Fernet.generate_key().decode()


def _override_db(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory


@pytest.fixture()
def anon_client(session_factory):
    """Client without a signed-in user."""
    _override_db(session_factory)
    limiter.reset()
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture()
def client(session_factory):
    """Client acting as TEST_USER (whose profile row exists)."""
    session = session_factory()
    create_or_update_user(
        session,
        user_id=TEST_USER.id,
        email=TEST_USER.email,
        display_name=TEST_USER.display_name,
    )
    session.close()

    _override_db(session_factory)
    app.dependency_overrides[get_current_user] = lambda: TEST_USER
    limiter.reset()
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
