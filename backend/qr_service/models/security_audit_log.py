"""Audit trail of account events, with the client context each one came from."""

from datetime import datetime
from uuid import uuid4

from sqlalchemy import JSON, DateTime, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from qr_service.database import Base


class SecurityAuditLog(Base):
    """One account event (sign-in, verification, reset) and where it came from.

    ``details`` holds the event payload plus the client context parsed from the
    request: device class, browser, OS and best-effort location.
    """

    __tablename__ = "security_audit_logs"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid4())
    )
    user_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="SET NULL"), index=True
    )
    event_type: Mapped[str] = mapped_column(String(50), index=True)
    ip_address: Mapped[str | None] = mapped_column(String(45))
    user_agent: Mapped[str | None] = mapped_column(String(500))
    details: Mapped[dict | None] = mapped_column(JSON)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), index=True
    )

    def __repr__(self) -> str:
        return f"<SecurityAuditLog(id={self.id}, event={self.event_type}, user_id={self.user_id})>"
