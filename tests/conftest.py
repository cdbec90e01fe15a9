"""
Test configuration and fixtures.

Provides:
- In-memory SQLite database, schema rebuilt for each test
- JWT token minting for authenticated tests
- HTTPX AsyncClient with proper headers
- Local storage rooted in a temp directory
"""
import os
import tempfile
import uuid
from dataclasses import dataclass
from typing import AsyncGenerator, Generator

# Settings are read at import time
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["STORAGE_BACKEND"] = "local"
os.environ["LOCAL_STORAGE_PATH"] = tempfile.mkdtemp(prefix="certnow-test-")
os.environ["API_BASE_URL"] = "http://test"
os.environ["ENV"] = "test"

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.orm import Session

from certnow.core.deps import COOKIE_NAME, get_db
from certnow.core.security import create_session_token
from certnow.db.base import Base
from certnow.db.enums import CertificateType, JobStatus
from certnow.db.models import Job, User
from certnow.db.session import SessionLocal, engine
from certnow.main import app


# =============================================================================
# Database Fixtures
# =============================================================================

@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """Fresh schema per test; app code is free to commit."""
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def test_user(db: Session) -> User:
    """Create the engineer most tests act as."""
    user = User(
        id=uuid.uuid4(),
        email=f"engineer-{uuid.uuid4().hex[:8]}@test.com",
        display_name="Test Engineer",
    )
    db.add(user)
    db.commit()
    return user


@pytest.fixture(scope="function")
def other_user(db: Session) -> User:
    """A second engineer, for ownership checks."""
    user = User(
        id=uuid.uuid4(),
        email=f"other-{uuid.uuid4().hex[:8]}@test.com",
        display_name="Other Engineer",
    )
    db.add(user)
    db.commit()
    return user


@pytest.fixture(scope="function")
def make_job(db: Session, test_user: User):
    """Factory for jobs owned by test_user (or another user)."""
    def _make_job(
        certificate_type: CertificateType | None = CertificateType.CP12,
        user: User | None = None,
        **kwargs,
    ) -> Job:
        job = Job(
            user_id=(user or test_user).id,
            title=kwargs.pop("title", "Test job"),
            status=kwargs.pop("status", JobStatus.ACTIVE.value),
            certificate_type=certificate_type.value if certificate_type else None,
            **kwargs,
        )
        db.add(job)
        db.commit()
        db.refresh(job)
        return job

    return _make_job


# =============================================================================
# Auth Fixtures
# =============================================================================

@dataclass
class TestAuth:
    """Test authentication context."""
    user: User
    token: str
    cookie_name: str = COOKIE_NAME


@pytest.fixture(scope="function")
def test_auth(test_user: User) -> TestAuth:
    """Create JWT token for test user."""
    token = create_session_token(
        user_id=test_user.id,
        token_version=test_user.token_version,
    )
    return TestAuth(user=test_user, token=token)


# =============================================================================
# Client Fixtures
# =============================================================================

@pytest.fixture(scope="function")
async def client(db: Session) -> AsyncGenerator[AsyncClient, None]:
    """
    Create unauthenticated AsyncClient for testing public endpoints.
    """
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as c:
        yield c

    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
async def authed_client(
    db: Session,
    test_auth: TestAuth
) -> AsyncGenerator[AsyncClient, None]:
    """
    Create authenticated AsyncClient with JWT cookie and CSRF header.
    """
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        cookies={test_auth.cookie_name: test_auth.token},
        headers={"X-Requested-With": "XMLHttpRequest"},  # CSRF header
    ) as c:
        yield c

    app.dependency_overrides.clear()
