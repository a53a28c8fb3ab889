"""Authentication primitives: password hashing and session token signing."""

import hashlib
import hmac
import logging
from datetime import UTC, datetime, timedelta

import bcrypt
import jwt

from qr_service.config import settings
from qr_service.schemas.auth import SessionClaims

logger = logging.getLogger(__name__)

SESSION_TOKEN_TYPE = "session"


class AuthService:
    """Service for authentication operations."""

    # Pre-computed bcrypt hash for timing-consistent password verification
    # Used when user doesn't exist so both failure paths cost one bcrypt check
    _DUMMY_HASH = "$2b$12$LQv3c1yqBWVHxkd0LHAkCOYz6TtxMQJqhN8/X4.VTtYA9dWQ6E3Ky"

    @staticmethod
    def get_dummy_hash() -> str:
        """Get a dummy password hash for timing-consistent verification."""
        return AuthService._DUMMY_HASH

    @staticmethod
    def hash_password(password: str) -> str:
        """Hash a password using bcrypt."""
        salt = bcrypt.gensalt()
        hashed = bcrypt.hashpw(password.encode("utf-8"), salt)
        return hashed.decode("utf-8")

    @staticmethod
    def verify_password(password: str, hashed: str) -> bool:
        """Verify a password against its hash."""
        try:
            return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("utf-8"))
        except ValueError as e:
            logger.error(f"Password verification error: {e}")
            return False

    @staticmethod
    def hash_token(token: str) -> str:
        """Hash a verification/reset token using SHA-256 for storage."""
        return hashlib.sha256(token.encode("utf-8")).hexdigest()

    @staticmethod
    def verify_token_hash(token: str, hashed: str) -> bool:
        """Verify a token against its SHA-256 hash."""
        return hmac.compare_digest(AuthService.hash_token(token), hashed)

    @staticmethod
    def create_session_token(
        claims: SessionClaims,
        expires_delta: timedelta | None = None,
    ) -> tuple[str, datetime]:
        """Sign a session token for the given claims.

        Returns the encoded token and its expiry.
        """
        if expires_delta is None:
            expires_delta = timedelta(days=settings.session_token_expire_days)

        now = datetime.now(UTC)
        expire = now + expires_delta
        payload = {
            "sub": claims.id,
            "email": claims.email,
            "name": claims.name,
            "role": claims.role,
            "exp": expire,
            "iat": now,
            "type": SESSION_TOKEN_TYPE,
        }
        token = jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)
        return token, expire

    @staticmethod
    def decode_session_token(token: str) -> SessionClaims | None:
        """Decode and validate a session token.

        Returns None when the signature is invalid, the token has expired,
        or the payload is not a session token.
        """
        try:
            payload = jwt.decode(
                token,
                settings.jwt_secret_key,
                algorithms=[settings.jwt_algorithm],
                options={"require": ["exp", "sub"]},
            )
        except jwt.ExpiredSignatureError:
            logger.debug("Token expired")
            return None
        except jwt.InvalidTokenError as e:
            logger.debug(f"Invalid token: {e}")
            return None

        if payload.get("type") != SESSION_TOKEN_TYPE:
            return None

        return SessionClaims(
            id=payload["sub"],
            email=payload.get("email", ""),
            name=payload.get("name", ""),
            role=payload.get("role", "user"),
        )
