"""
Pytest configuration and fixtures

Every test gets a fresh in-memory SQLite schema (create_all / drop_all), and
the API's get_db dependency is overridden to hand out the test session, so
services called directly and requests made through TestClient see the same
data.
"""
import pytest
import sys
import os
from types import SimpleNamespace
from uuid import uuid4

# Add the parent directory to the path so we can import core/, services/, ...
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

# Must be set before core.config is imported
os.environ.setdefault("SECRET_KEY", "test-secret-key-for-pytest-only-0123456789abcdef")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("LOG_FORMAT", "text")
os.environ["BCRYPT_ROUNDS"] = "4"

from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from core.auth import load_actor
from core.database import Base, get_db
from core.security import create_session_token, get_password_hash
from main import app
from models import User
from services.group_membership import create_group, join_group

TEST_ENGINE = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


@event.listens_for(TEST_ENGINE, "connect")
def _enable_sqlite_foreign_keys(dbapi_conn, connection_record):
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


TestingSessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=TEST_ENGINE,
    expire_on_commit=False,
)


@pytest.fixture(scope="function")
def db_session():
    """
    Fresh schema and session per test; the API uses the same session.
    """
    Base.metadata.create_all(bind=TEST_ENGINE)
    session = TestingSessionLocal()

    def _override_get_db():
        try:
            yield session
        except Exception:
            session.rollback()
            raise

    app.dependency_overrides[get_db] = _override_get_db
    try:
        yield session
    finally:
        app.dependency_overrides.pop(get_db, None)
        session.close()
        Base.metadata.drop_all(bind=TEST_ENGINE)


@pytest.fixture
def make_user(db_session):
    """Factory: persist a user directly (no HTTP round trip)."""
    def _make(role: str = User.ROLE_ATHLETE, *, email=None, display_name=None, password="secret123"):
        user = User(
            email=email or f"{role}_{uuid4().hex[:10]}@example.com",
            display_name=display_name or f"{role.title()} {uuid4().hex[:4]}",
            role=role,
            password_hash=get_password_hash(password),
            profile_complete=True,
        )
        db_session.add(user)
        db_session.commit()
        return user

    return _make


@pytest.fixture
def actor_for(db_session):
    """Factory: resolve the current ActorContext for a user, as a request would."""
    def _actor(user):
        return load_actor(db_session, user)

    return _actor


@pytest.fixture
def auth_headers():
    """Factory: bearer headers carrying a valid session token for a user."""
    def _headers(user):
        token = create_session_token(user.id, user.email, display_name=user.display_name, role=user.role)
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture
def squad(db_session, make_user, actor_for):
    """
    Coach + two athletes in one group, and an outsider with no group.
    """
    coach = make_user(User.ROLE_COACH, display_name="Coach Carter")
    xena = make_user(display_name="Xena")
    yuri = make_user(display_name="Yuri")
    outsider = make_user(display_name="Zed")

    group = create_group(db_session, actor_for(coach), "Track Squad")
    join_group(db_session, actor_for(xena), group.code)
    join_group(db_session, actor_for(yuri), group.code)
    db_session.commit()

    return SimpleNamespace(coach=coach, xena=xena, yuri=yuri, outsider=outsider, group=group)
