"""Tests for auth service."""

from datetime import timedelta

import jwt

from qr_service.config import settings
from qr_service.schemas.auth import SessionClaims
from qr_service.services.auth_service import AuthService

CLAIMS = SessionClaims(id="user-123", email="alice@example.com", name="alice", role="user")


def test_hash_password():
    """Test password hashing."""
    password = "secure_password_123"
    hashed = AuthService.hash_password(password)

    assert hashed != password
    assert hashed.startswith("$2b$")  # bcrypt prefix


def test_verify_password_correct():
    password = "secure_password_123"
    hashed = AuthService.hash_password(password)

    assert AuthService.verify_password(password, hashed) is True


def test_verify_password_incorrect():
    password = "secure_password_123"
    hashed = AuthService.hash_password(password)

    assert AuthService.verify_password("wrong_password", hashed) is False


def test_verify_password_against_malformed_hash_is_false():
    assert AuthService.verify_password("anything1", "not-a-bcrypt-hash") is False


def test_session_token_round_trips_claims():
    token, expires_at = AuthService.create_session_token(CLAIMS)

    assert AuthService.decode_session_token(token) == CLAIMS
    assert expires_at is not None


def test_session_token_expires_after_thirty_days():
    token, _ = AuthService.create_session_token(CLAIMS)
    payload = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])

    assert payload["exp"] - payload["iat"] == int(timedelta(days=30).total_seconds())


def test_decode_expired_token():
    """Test that expired tokens fail."""
    token, _ = AuthService.create_session_token(CLAIMS, expires_delta=timedelta(hours=-1))

    assert AuthService.decode_session_token(token) is None


def test_decode_token_with_wrong_signature():
    token, _ = AuthService.create_session_token(CLAIMS)
    forged = jwt.decode(token, options={"verify_signature": False})
    forged_token = jwt.encode(forged, "some-other-secret-that-is-long-enough", algorithm="HS256")

    assert AuthService.decode_session_token(forged_token) is None


def test_decode_garbage_token():
    assert AuthService.decode_session_token("not.a.token") is None


def test_decode_rejects_non_session_token():
    payload = {"sub": "user-123", "exp": 9999999999, "type": "refresh"}
    token = jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)

    assert AuthService.decode_session_token(token) is None


def test_hash_token_is_stable_and_verifiable():
    hashed = AuthService.hash_token("abc")

    assert hashed == AuthService.hash_token("abc")
    assert len(hashed) == 64
    assert AuthService.verify_token_hash("abc", hashed) is True
    assert AuthService.verify_token_hash("abd", hashed) is False
