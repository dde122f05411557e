"""Pytest fixtures for the KYC desk test suite.

Provides reusable test fixtures for:
- In-memory SQLite database session (schema created per test)
- Local attachment store on a temporary directory
- Submission registry with a fixed clock
- FastAPI test client wired to the test database and store

Usage:
    @pytest.mark.asyncio
    async def test_register(registry, attachment_store):
        ...
"""

import os
import sys
from datetime import datetime, timezone
from pathlib import Path

# Set environment variables BEFORE any kycdesk imports; the engine and the
# application settings are created at import time
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["STORAGE_BACKEND"] = "local"
os.environ.setdefault("JWT_SECRET", "test-jwt-secret-key-256-bits-minimum-length-required-for-security")
os.environ.setdefault("LOG_JSON", "false")
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault("AWS_DEFAULT_REGION", "us-east-1")

backend_src = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(backend_src))
sys.path.insert(0, str(Path(__file__).parent))

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from kycdesk.config import get_settings
from kycdesk.infrastructure.storage import LocalAttachmentStore
from kycdesk.models.base import Base
from kycdesk.submissions.registry import SubmissionRegistry

# Reference time for every test that needs "now": 15 June 2024, 10:00 UTC
FIXED_NOW = datetime(2024, 6, 15, 10, 0, tzinfo=timezone.utc)

# One shared in-memory connection, usable from executor threads
test_engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)


@pytest.fixture(autouse=True)
def clear_settings_cache():
    """Re-read settings for every test (tests may monkeypatch the environment)."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def db_session() -> Session:
    """Database session on a freshly created schema."""
    Base.metadata.create_all(bind=test_engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=test_engine)


@pytest.fixture
def session_factory(db_session):
    """Factory for independent sessions on the same test database."""
    return TestingSessionLocal


@pytest.fixture
def attachment_store(tmp_path) -> LocalAttachmentStore:
    """Local attachment store rooted in a temporary directory.

    Created with the storage directories already in place, as initialize()
    would leave them.
    """
    store = LocalAttachmentStore(root=str(tmp_path / "attachments"))
    store.incoming.mkdir(parents=True, exist_ok=True)
    return store


@pytest.fixture
def clock():
    return lambda: FIXED_NOW


@pytest.fixture
def registry(db_session, attachment_store, clock) -> SubmissionRegistry:
    return SubmissionRegistry(db=db_session, store=attachment_store, clock=clock)


@pytest.fixture
def client(db_session, attachment_store):
    """Test client bound to the test database and attachment store."""
    from fastapi.testclient import TestClient

    from kycdesk.database import get_db
    from kycdesk.dependencies import get_session_factory
    from kycdesk.main import app

    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: TestingSessionLocal
    app.state.attachment_store = attachment_store

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
    app.state.attachment_store = None
