"""User model for authentication."""

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import uuid4

from sqlalchemy import Boolean, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from qr_service.database import Base

if TYPE_CHECKING:
    from qr_service.models.qr_code import QrCode


class UserRole:
    """Role constants."""

    USER = "user"
    ADMIN = "admin"


class User(Base):
    """User model representing registered accounts.

    Verification and reset tokens are stored as SHA-256 digests; the raw
    token only ever exists in the emailed link.
    """

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid4())
    )
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    password_hash: Mapped[str] = mapped_column(String(255))
    name: Mapped[str | None] = mapped_column(String(100))
    role: Mapped[str] = mapped_column(String(20), default=UserRole.USER)
    is_verified: Mapped[bool] = mapped_column(Boolean, default=False)

    verification_token: Mapped[str | None] = mapped_column(String(64), index=True)
    verification_token_expires: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    reset_password_token: Mapped[str | None] = mapped_column(String(64), index=True)
    reset_password_expires: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    created_at: Mapped[datetime] = mapped_column(server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), onupdate=func.now()
    )

    # Relationships
    qr_codes: Mapped[list["QrCode"]] = relationship(
        back_populates="owner", cascade="all, delete-orphan"
    )

    @property
    def display_name(self) -> str:
        """Name shown in sessions: the chosen name, else the email local-part."""
        return self.name or self.email.split("@")[0]

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email='{self.email}')>"
