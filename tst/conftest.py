import os

# The database module requires DATABASE_URL at import time
os.environ.setdefault("DATABASE_URL", "sqlite://")

from datetime import date, datetime, timedelta

import pytest
from fastapi.testclient import TestClient
from jose import jwt
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from school_gateway.app import create_app
from school_gateway.shared.auth.database import ADMIN_ROLE, UserRole, get_db, init_db
from school_gateway.shared.config import Settings
from school_gateway.shared.rate_limit.rate_limiter import InMemoryRateLimiter
from school_gateway.shared.upload.storage import LocalObjectStore

JWT_SECRET = "test-jwt-secret"
ADMIN_USER_ID = "11111111-1111-1111-1111-111111111111"
TEACHER_USER_ID = "22222222-2222-2222-2222-222222222222"


class FakeClock:
    def __init__(self, now=1_700_000_000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


def years_ago(years, today=None):
    today = today or date.today()
    try:
        return today.replace(year=today.year - years)
    except ValueError:
        # Feb 29 on a non-leap target year
        return today.replace(year=today.year - years, day=28)


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture()
def db_session(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture()
def upload_root(tmp_path):
    return tmp_path / "uploads"


@pytest.fixture()
def settings(upload_root):
    return Settings(
        database_url="sqlite://",
        auth_jwt_secret=JWT_SECRET,
        upload_dir=str(upload_root),
    )


@pytest.fixture()
def object_store(upload_root):
    return LocalObjectStore(upload_root, "/uploads")


@pytest.fixture()
def app(settings, clock, object_store, session_factory):
    app = create_app(
        settings=settings,
        contact_rate_limiter=InMemoryRateLimiter(quota=5, window_seconds=3600, clock=clock),
        admission_rate_limiter=InMemoryRateLimiter(quota=3, window_seconds=3600, clock=clock),
        object_store=object_store,
    )

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    return app


@pytest.fixture()
def client(app):
    return TestClient(app)


@pytest.fixture()
def make_token():
    def _make_token(user_id, expires_in=timedelta(minutes=15), **claims):
        payload = {
            "sub": user_id,
            "aud": "authenticated",
            "exp": datetime.utcnow() + expires_in,
        }
        payload.update(claims)
        return jwt.encode(payload, JWT_SECRET, algorithm="HS256")
    return _make_token


@pytest.fixture()
def admin_user(db_session):
    db_session.add(UserRole(user_id=ADMIN_USER_ID, role=ADMIN_ROLE))
    db_session.add(UserRole(user_id=TEACHER_USER_ID, role="teacher"))
    db_session.commit()
    return ADMIN_USER_ID
