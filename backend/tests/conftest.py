"""Shared test fixtures."""

from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from qr_service.database import Base, get_db
from qr_service.main import app
from qr_service.models import User
from qr_service.rate_limiter import client_limiter, limiter

VERIFY_EMAIL_PATCH = "qr_service.services.verification_service.EmailService.send_verification_email"
RESET_EMAIL_PATCH = "qr_service.services.verification_service.EmailService.send_password_reset_email"


def register_and_verify_user(
    test_client: TestClient, db_session_maker, email: str, password: str
) -> dict:
    """Helper to register and verify a user, then sign in to get a session token."""
    with patch(VERIFY_EMAIL_PATCH):
        test_client.post(
            "/api/auth/register",
            json={"email": email, "password": password},
        )

    db = db_session_maker()
    user = db.query(User).filter(User.email == email).first()
    user.is_verified = True
    db.commit()
    db.close()

    response = test_client.post(
        "/api/auth/signin",
        json={"email": email, "password": password},
    )
    return response.json()


def auth_header(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def db_session_maker():
    """In-memory database shared across connections, with all tables created."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


@pytest.fixture
def db(db_session_maker):
    session = db_session_maker()
    yield session
    session.close()


@pytest.fixture
def auth_client(db_session_maker):
    """Create test client with in-memory database.

    Yields a tuple of (TestClient, SessionMaker) for use in tests.
    """
    limiter.reset()
    client_limiter.reset()

    def override_get_db():
        db = db_session_maker()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as test_client:
        yield test_client, db_session_maker

    app.dependency_overrides.clear()
