"""User data access layer."""

import logging
from datetime import datetime

from sqlalchemy import update
from sqlalchemy.orm import Session

from qr_service.errors import NotFoundError
from qr_service.models import User

logger = logging.getLogger(__name__)


class UserRepository:
    """Centralized user data access.

    Naming conventions:
    - find_* : Query that may return None
    - get_* : Query that raises exception if missing
    """

    def __init__(self, db: Session) -> None:
        self._db = db

    def find_by_id(self, user_id: str) -> User | None:
        """Find user by primary key."""
        return self._db.query(User).filter(User.id == user_id).first()

    def get_by_id(self, user_id: str) -> User:
        """Get user by primary key or raise NotFoundError."""
        user = self.find_by_id(user_id)
        if user is None:
            raise NotFoundError("User", user_id)
        return user

    def find_by_email(self, email: str) -> User | None:
        """Find user by normalized email."""
        return self._db.query(User).filter(User.email == email.strip().lower()).first()

    def create(self, email: str, password_hash: str) -> User:
        """Create an unverified user. Caller commits."""
        user = User(
            email=email.strip().lower(),
            password_hash=password_hash,
            is_verified=False,
        )
        self._db.add(user)
        self._db.flush()
        return user

    def set_verification_token(self, user: User, token_hash: str, expires_at: datetime) -> None:
        """Replace the user's pending verification token. Caller commits."""
        user.verification_token = token_hash
        user.verification_token_expires = expires_at

    def set_reset_token(self, user: User, token_hash: str, expires_at: datetime) -> None:
        """Replace the user's pending reset token. Caller commits."""
        user.reset_password_token = token_hash
        user.reset_password_expires = expires_at

    def consume_verification_token(self, token_hash: str, now: datetime) -> str | None:
        """Mark the matching user verified and clear the token in one statement.

        Returns the user id when exactly one live token matched. The update is
        conditional on the token still being present and unexpired, so two
        concurrent redemptions cannot both succeed.
        """
        user_id = (
            self._db.query(User.id)
            .filter(
                User.verification_token == token_hash,
                User.verification_token_expires > now,
            )
            .scalar()
        )
        if user_id is None:
            return None

        result = self._db.execute(
            update(User)
            .where(
                User.id == user_id,
                User.verification_token == token_hash,
                User.verification_token_expires > now,
            )
            .values(
                is_verified=True,
                verification_token=None,
                verification_token_expires=None,
            )
            .execution_options(synchronize_session=False)
        )
        return user_id if result.rowcount == 1 else None

    def consume_reset_token(self, token_hash: str, now: datetime, password_hash: str) -> str | None:
        """Replace the password and clear the reset token in one statement."""
        user_id = (
            self._db.query(User.id)
            .filter(
                User.reset_password_token == token_hash,
                User.reset_password_expires > now,
            )
            .scalar()
        )
        if user_id is None:
            return None

        result = self._db.execute(
            update(User)
            .where(
                User.id == user_id,
                User.reset_password_token == token_hash,
                User.reset_password_expires > now,
            )
            .values(
                password_hash=password_hash,
                reset_password_token=None,
                reset_password_expires=None,
            )
            .execution_options(synchronize_session=False)
        )
        return user_id if result.rowcount == 1 else None

    def find_by_live_reset_token(self, token_hash: str, now: datetime) -> User | None:
        """Find the user holding an unexpired reset token, without consuming it."""
        return (
            self._db.query(User)
            .filter(
                User.reset_password_token == token_hash,
                User.reset_password_expires > now,
            )
            .first()
        )

    def count(self) -> int:
        """Total registered users."""
        return self._db.query(User).count()
