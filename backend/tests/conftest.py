"""
Shared fixtures: SQLite session, fake tracker HTTP session, stub vector
store client and an authenticated TestClient.
"""
import json
import os

os.environ.setdefault("DATABASE_URL", "sqlite:///./test_integrations.db")

import pytest
import requests
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app.config import settings
from app.database import Base, get_db
from app.models.project import Project
from app.services.vector_store_client import FileIndexingStatus
from app.utils.encryption import CredentialVault, VaultConfig, generate_key, reset_credential_vault

SQLALCHEMY_DATABASE_URL = "sqlite:///./test_integration_core.db"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db():
    """Create a fresh database session for each test."""
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def project(db):
    """Create a test project."""
    p = Project(name="Test Project", description="A test project", workspace_id="ws-1")
    db.add(p)
    db.commit()
    db.refresh(p)
    return p


@pytest.fixture
def encryption_key():
    return generate_key()


@pytest.fixture
def vault(encryption_key):
    return CredentialVault(VaultConfig(encoded_key=encryption_key))


@pytest.fixture
def plaintext_vault():
    return CredentialVault(VaultConfig.plaintext())


# ========================================
# Tracker HTTP fakes
# ========================================

class FakeResponse:
    """Just enough of requests.Response for the adapters."""

    def __init__(self, status_code=200, body=None, text=None):
        self.status_code = status_code
        if text is not None:
            self.text = text
        elif body is not None:
            self.text = json.dumps(body)
        else:
            self.text = ""


class FakeSession:
    """Replays queued responses and records every request."""

    def __init__(self):
        self.calls = []
        self._queue = []

    def add(self, status_code=200, body=None, text=None):
        self._queue.append(FakeResponse(status_code, body, text))
        return self

    def fail(self, exc):
        self._queue.append(exc)
        return self

    def request(self, method, url, headers=None, json=None, timeout=None):
        self.calls.append({"method": method, "url": url, "headers": headers or {}, "json": json, "timeout": timeout})
        if not self._queue:
            raise AssertionError(f"Unexpected request: {method} {url}")
        item = self._queue.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


@pytest.fixture
def fake_session():
    return FakeSession()


@pytest.fixture
def patch_requests_session(monkeypatch, fake_session):
    """Make adapters built without an explicit session use ``fake_session``."""
    monkeypatch.setattr(requests, "Session", lambda: fake_session)
    return fake_session


# ========================================
# Vector store stub
# ========================================

class StubVectorStoreClient:
    """In-memory stand-in for VectorStoreClient."""

    def __init__(self):
        self.created_stores = []
        self.uploaded = []
        self.attached = []
        self.status_calls = []
        self.detached = []
        self.deleted_files = []
        self.statuses = {}
        self.upload_error = None
        self.status_error = None
        self.cleanup_ok = True
        self._counter = 0

    def create_vector_store(self, name):
        self._counter += 1
        store_id = f"vs_stub{self._counter}"
        self.created_stores.append((store_id, name))
        return store_id

    def upload_file(self, file_name, content, mime_type=None):
        if self.upload_error is not None:
            raise self.upload_error
        self._counter += 1
        file_id = f"file-stub{self._counter}"
        self.uploaded.append((file_id, file_name, content, mime_type))
        return file_id

    def attach_file(self, vector_store_id, file_id):
        self.attached.append((vector_store_id, file_id))

    def retrieve_file_status(self, vector_store_id, file_id):
        self.status_calls.append((vector_store_id, file_id))
        if self.status_error is not None:
            raise self.status_error
        return self.statuses.get(file_id, FileIndexingStatus(status="in_progress"))

    def detach_file(self, vector_store_id, file_id):
        self.detached.append((vector_store_id, file_id))
        return self.cleanup_ok

    def delete_file(self, file_id):
        self.deleted_files.append(file_id)
        return self.cleanup_ok


@pytest.fixture
def vector_client():
    return StubVectorStoreClient()


# ========================================
# API client
# ========================================

@pytest.fixture
def client(db, monkeypatch, encryption_key, vector_client, patch_requests_session):
    """TestClient with the test session, a fixed user, a real key and no rate limits."""
    from fastapi.testclient import TestClient

    from app.main import app
    from app.rate_limiter import limiter
    from app.services import context_indexing_service
    from app.utils.dependencies import CurrentUser, get_current_user

    monkeypatch.setattr(settings, "APP_ENCRYPTION_KEY", encryption_key)
    reset_credential_vault()
    monkeypatch.setattr(context_indexing_service, "get_vector_store_client", lambda: vector_client)

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_user] = lambda: CurrentUser(id="user-1", email="pm@example.com")
    limiter.enabled = False
    try:
        with TestClient(app) as test_client:
            yield test_client
    finally:
        app.dependency_overrides.clear()
        limiter.enabled = True
        reset_credential_vault()
