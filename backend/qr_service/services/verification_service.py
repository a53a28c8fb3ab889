"""Single-use email verification and password reset tokens."""

import hashlib
import hmac
import logging
import secrets
import time
from datetime import UTC, datetime, timedelta
from enum import Enum

from sqlalchemy.orm import Session

from qr_service.config import settings
from qr_service.errors import InvalidOrExpiredToken
from qr_service.models import User
from qr_service.services.auth_service import AuthService
from qr_service.services.email_service import EmailService
from qr_service.services.repositories import UserRepository

logger = logging.getLogger(__name__)


class TokenKind(str, Enum):
    """Purpose of an emailed token."""

    VERIFY = "verify"
    RESET = "reset"


def token_lifetime(kind: TokenKind) -> timedelta:
    """How long a freshly issued token of this kind stays redeemable."""
    if kind is TokenKind.VERIFY:
        return timedelta(hours=settings.verification_token_expire_hours)
    return timedelta(hours=settings.reset_token_expire_hours)


class VerificationService:
    """Issues and redeems verification/reset tokens for a user.

    The raw token is only ever sent by email; the user row stores its SHA-256
    digest with an explicit expiry. Redemption clears the token in the same
    conditional update that applies its effect.
    """

    def __init__(self, db: Session) -> None:
        self._db = db
        self._users = UserRepository(db)

    @staticmethod
    def generate_token(user_id: str) -> str:
        """Derive an unguessable token from the user id, a server secret and a timestamp salt."""
        salt = f"{user_id}:{time.time_ns()}:{secrets.token_hex(16)}"
        return hmac.new(
            settings.signing_secret.encode("utf-8"), salt.encode("utf-8"), hashlib.sha256
        ).hexdigest()

    def issue_token(self, user_id: str, kind: TokenKind) -> None:
        """Store a new token for the user and email the link.

        The token is committed before sending, so a failed send can be retried
        with a resend. Raises NotFoundError for an unknown user and
        EmailDeliveryError if the email could not be sent.
        """
        user = self._users.get_by_id(user_id)
        token = self.generate_token(user.id)
        expires_at = datetime.now(UTC) + token_lifetime(kind)
        token_hash = AuthService.hash_token(token)

        if kind is TokenKind.VERIFY:
            self._users.set_verification_token(user, token_hash, expires_at)
        else:
            self._users.set_reset_token(user, token_hash, expires_at)
        self._db.commit()

        if kind is TokenKind.VERIFY:
            EmailService.send_verification_email(user.email, token)
        else:
            EmailService.send_password_reset_email(user.email, token)
        logger.info(f"Issued {kind.value} token for user {user.id}")

    def redeem(self, token: str, kind: TokenKind, new_password: str | None = None) -> User:
        """Redeem a token, applying its effect exactly once.

        VERIFY marks the account verified; RESET replaces the password hash.
        Raises InvalidOrExpiredToken without touching any row when the token
        does not match a live one.
        """
        now = datetime.now(UTC)
        token_hash = AuthService.hash_token(token)

        if kind is TokenKind.VERIFY:
            user_id = self._users.consume_verification_token(token_hash, now)
        else:
            if not new_password:
                raise ValueError("new_password is required to redeem a reset token")
            user_id = self._users.consume_reset_token(
                token_hash, now, AuthService.hash_password(new_password)
            )

        if user_id is None:
            self._db.rollback()
            raise InvalidOrExpiredToken(
                "Invalid or expired verification token"
                if kind is TokenKind.VERIFY
                else "Invalid or expired reset token"
            )

        self._db.commit()
        logger.info(f"Redeemed {kind.value} token for user {user_id}")
        return self._db.get(User, user_id, populate_existing=True)

    def check_reset_token(self, token: str) -> User:
        """Confirm a reset token is live without consuming it."""
        user = self._users.find_by_live_reset_token(AuthService.hash_token(token), datetime.now(UTC))
        if user is None:
            raise InvalidOrExpiredToken("Invalid or expired reset token")
        return user
