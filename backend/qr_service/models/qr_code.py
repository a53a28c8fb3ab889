"""QR code record model."""

from datetime import datetime
from typing import TYPE_CHECKING, Any
from uuid import uuid4

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from qr_service.database import Base

if TYPE_CHECKING:
    from qr_service.models.scan_event import ScanEvent
    from qr_service.models.user import User


class QrCode(Base):
    """A saved QR code and its scan counters."""

    __tablename__ = "qr_codes"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid4())
    )
    short_id: Mapped[str] = mapped_column(String(16), unique=True, index=True)
    owner_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), index=True
    )
    target_url: Mapped[str] = mapped_column(String(2048))
    title: Mapped[str] = mapped_column(String(200), default="")
    text_content: Mapped[str] = mapped_column(Text, default="")
    show_title: Mapped[bool] = mapped_column(Boolean, default=True)
    show_text: Mapped[bool] = mapped_column(Boolean, default=True)
    qr_options: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict)

    scan_count: Mapped[int] = mapped_column(Integer, default=0)
    last_scanned: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    owner: Mapped["User"] = relationship(back_populates="qr_codes")
    scans: Mapped[list["ScanEvent"]] = relationship(
        back_populates="qr_code",
        cascade="all, delete-orphan",
        order_by="ScanEvent.scanned_at.desc()",
    )

    def __repr__(self) -> str:
        return f"<QrCode(short_id={self.short_id}, owner_id={self.owner_id})>"
