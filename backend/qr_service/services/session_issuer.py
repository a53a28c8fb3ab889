"""Credential sign-in and session token issuance."""

import logging
from datetime import datetime
from enum import Enum

from sqlalchemy.orm import Session

from qr_service.errors import EmailDeliveryError, ValidationError
from qr_service.schemas.auth import SessionClaims
from qr_service.services.auth_service import AuthService
from qr_service.services.repositories import UserRepository
from qr_service.services.verification_service import TokenKind, VerificationService

logger = logging.getLogger(__name__)


class AuthFailure(str, Enum):
    """Reasons a credentials sign-in can fail."""

    NO_SUCH_USER = "no_such_user"
    INVALID_CREDENTIALS = "invalid_credentials"
    UNVERIFIED_ACCOUNT = "unverified_account"

    @property
    def message(self) -> str:
        return {
            AuthFailure.NO_SUCH_USER: "No user found with this email",
            AuthFailure.INVALID_CREDENTIALS: "Invalid password",
            AuthFailure.UNVERIFIED_ACCOUNT: "Please verify your email. Verification email sent.",
        }[self]


AuthResult = SessionClaims | AuthFailure


class SessionIssuer:
    """Validates credentials and issues stateless session tokens."""

    def __init__(self, db: Session) -> None:
        self._db = db
        self._users = UserRepository(db)

    def authenticate(self, email: str, password: str) -> AuthResult:
        """Check credentials and return the session claims or the failure reason.

        A correct password on an unverified account re-sends the verification
        email before failing with UNVERIFIED_ACCOUNT.
        """
        if not email or not password:
            raise ValidationError("Please provide both email and password")

        user = self._users.find_by_email(email)
        if user is None:
            # Keep the timing of this path close to a wrong-password attempt
            AuthService.verify_password(password, AuthService.get_dummy_hash())
            return AuthFailure.NO_SUCH_USER

        if not AuthService.verify_password(password, user.password_hash):
            return AuthFailure.INVALID_CREDENTIALS

        if not user.is_verified:
            try:
                VerificationService(self._db).issue_token(user.id, TokenKind.VERIFY)
            except EmailDeliveryError as e:
                logger.warning(f"Could not re-send verification email to {user.email}: {e}")
            return AuthFailure.UNVERIFIED_ACCOUNT

        return SessionClaims(
            id=user.id,
            email=user.email,
            name=user.display_name,
            role=user.role,
        )

    @staticmethod
    def issue(claims: SessionClaims) -> tuple[str, datetime]:
        """Sign a session token for the claims; returns (token, expires_at)."""
        return AuthService.create_session_token(claims)

    @staticmethod
    def verify(token: str) -> SessionClaims | None:
        """Reconstruct the claims from a token, or None if it is invalid or expired."""
        return AuthService.decode_session_token(token)
