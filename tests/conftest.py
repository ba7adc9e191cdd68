"""Shared pytest fixtures: in-memory database, fresh session store, API client."""

import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["JWT_SECRET_KEY"] = "test-secret"
os.environ["JWT_EXPIRED_TIME"] = "60"
os.environ["APP_KEY"] = ""
os.environ["REDIS_URL"] = ""

import pytest
from fastapi.testclient import TestClient

import config
from core.security import get_password_hash
from core.session_store import MemorySessionStore, get_session_store
from database import SessionLocal, engine
from main import app
from models import Base
from models.user import User, UserProfile


@pytest.fixture(autouse=True)
def reset_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture(autouse=True)
def avatar_dir(tmp_path, monkeypatch):
    path = tmp_path / "avatars"
    monkeypatch.setattr(config, "AVATAR_DIR", str(path))
    return path


@pytest.fixture
def session_store():
    return MemorySessionStore()


@pytest.fixture
def client(session_store):
    app.dependency_overrides[get_session_store] = lambda: session_store
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def db_session():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def create_user(db_session):
    """Insert a user + profile directly, bypassing the API."""

    def _create(username, password, deleted_at=None, **profile_fields):
        user = User(username=username, password=get_password_hash(password), deleted_at=deleted_at)
        db_session.add(user)
        db_session.commit()
        profile = UserProfile(user_id=user.id, deleted_at=deleted_at, **profile_fields)
        db_session.add(profile)
        db_session.commit()
        return user

    return _create


@pytest.fixture
def login(client):
    """Log in and return the raw response."""

    def _login(username, password):
        return client.post("/login", json={"username": username, "password": password})

    return _login


@pytest.fixture
def auth_headers(create_user, login):
    create_user("admin", "admin123", name="Administrator")
    response = login("admin", "admin123")
    assert response.status_code == 200
    return {"token": response.json()["token"]}
