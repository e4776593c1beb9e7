import pytest
import os
import sys

CURRENT_DIR = os.path.dirname(__file__)
SERVICE_ROOT = os.path.dirname(CURRENT_DIR)
if SERVICE_ROOT not in sys.path:
    sys.path.insert(0, SERVICE_ROOT)

from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from classroom_service.config import settings
from classroom_service.infrastructure.db import get_db
from classroom_service.infrastructure.models import Base, User
from classroom_service.infrastructure.rate_limit import limiter
from classroom_service.infrastructure.security import create_access_token
from classroom_service.infrastructure.storage import build_download_url, get_storage

# In-memory database shared by every connection of the test engine
test_engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)

import classroom_service.infrastructure.db
import classroom_service.main
classroom_service.infrastructure.db.engine = test_engine
classroom_service.infrastructure.db.SessionLocal = TestingSessionLocal
classroom_service.main.engine = test_engine

from classroom_service.main import app


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


class FakeStorage:
    """Records uploads instead of talking to Firebase."""

    bucket = "test-bucket"

    def __init__(self):
        self.objects = {}
        self.deleted = []

    def upload(self, data: bytes, path: str, content_type: str) -> str:
        self.objects[path] = (data, content_type)
        return build_download_url(self.bucket, path)

    def delete(self, path: str) -> None:
        self.objects.pop(path, None)
        self.deleted.append(path)


@pytest.fixture(autouse=True)
def setup_test_environment(monkeypatch):
    """No redis and no rate limiting in tests."""
    monkeypatch.setattr(settings, "CACHE_ENABLED", False)
    monkeypatch.setattr(limiter, "enabled", False)


@pytest.fixture
def storage():
    return FakeStorage()


@pytest.fixture
def client(storage):
    Base.metadata.drop_all(bind=test_engine)
    Base.metadata.create_all(bind=test_engine)
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_storage] = lambda: storage
    yield TestClient(app)
    app.dependency_overrides.clear()
    Base.metadata.drop_all(bind=test_engine)


@pytest.fixture
def make_user():
    """Insert a user directly and return its id."""
    def _make(email: str, name: str = "") -> int:
        db = TestingSessionLocal()
        try:
            row = User(email=email, name=name, password_hash="not-a-real-hash", role="student")
            db.add(row)
            db.commit()
            return row.id
        finally:
            db.close()
    return _make


@pytest.fixture
def auth_header():
    def _header(email: str) -> dict:
        return {"Authorization": f"Bearer {create_access_token(sub=email)}"}
    return _header


@pytest.fixture
def count_rows():
    def _count(model) -> int:
        db = TestingSessionLocal()
        try:
            return db.query(model).count()
        finally:
            db.close()
    return _count


@pytest.fixture
def db_session(client):
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
