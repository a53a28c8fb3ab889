"""Scan event model (append-only)."""

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import uuid4

from sqlalchemy import DateTime, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from qr_service.database import Base

if TYPE_CHECKING:
    from qr_service.models.qr_code import QrCode


class ScanEvent(Base):
    """One resolved scan of a saved QR code."""

    __tablename__ = "scan_events"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid4())
    )
    qr_code_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("qr_codes.id", ondelete="CASCADE"), index=True
    )
    short_id: Mapped[str] = mapped_column(String(16), index=True)
    scanned_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True)
    device: Mapped[str | None] = mapped_column(String(20))
    browser: Mapped[str | None] = mapped_column(String(50))
    os: Mapped[str | None] = mapped_column(String(50))
    location: Mapped[str | None] = mapped_column(String(200))
    ip_address: Mapped[str | None] = mapped_column(String(45))
    user_agent: Mapped[str | None] = mapped_column(String(500))

    qr_code: Mapped["QrCode"] = relationship(back_populates="scans")

    def __repr__(self) -> str:
        return f"<ScanEvent(short_id={self.short_id}, scanned_at={self.scanned_at})>"
