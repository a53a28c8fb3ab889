"""QR code and scan event data access layer."""

import logging
import secrets
from collections.abc import Sequence
from datetime import datetime
from typing import Any

from sqlalchemy import func, update
from sqlalchemy.orm import Session

from qr_service.errors import NotFoundError
from qr_service.models import QrCode, ScanEvent

logger = logging.getLogger(__name__)

SHORT_ID_ALPHABET = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz"
SHORT_ID_LENGTH = 8

# Identifier embedded in unsaved live previews; never assigned to a record
PREVIEW_SHORT_ID = "find"


def generate_short_id(length: int = SHORT_ID_LENGTH) -> str:
    """Return a random base62 identifier."""
    return "".join(secrets.choice(SHORT_ID_ALPHABET) for _ in range(length))


class QrCodeRepository:
    """Centralized QR code data access.

    Every owner-facing query filters on ``owner_id`` so a record belonging to
    another account is indistinguishable from a missing one.
    """

    def __init__(self, db: Session) -> None:
        self._db = db

    def find_by_short_id(self, short_id: str) -> QrCode | None:
        """Find a QR code by its public identifier, regardless of owner."""
        return self._db.query(QrCode).filter(QrCode.short_id == short_id).first()

    def find_owned(self, short_id: str, owner_id: str) -> QrCode | None:
        """Find a QR code only if it belongs to the given owner."""
        return (
            self._db.query(QrCode)
            .filter(QrCode.short_id == short_id, QrCode.owner_id == owner_id)
            .first()
        )

    def get_owned(self, short_id: str, owner_id: str) -> QrCode:
        """Get an owned QR code or raise NotFoundError."""
        qr_code = self.find_owned(short_id, owner_id)
        if qr_code is None:
            raise NotFoundError("QR code", short_id)
        return qr_code

    def find_by_owner(self, owner_id: str) -> Sequence[QrCode]:
        """All QR codes belonging to an owner, newest first."""
        return (
            self._db.query(QrCode)
            .filter(QrCode.owner_id == owner_id)
            .order_by(QrCode.created_at.desc(), QrCode.short_id)
            .all()
        )

    def create(
        self,
        owner_id: str,
        target_url: str,
        title: str = "",
        text_content: str = "",
        show_title: bool = True,
        show_text: bool = True,
        qr_options: dict[str, Any] | None = None,
    ) -> QrCode:
        """Create a QR code with a fresh, unused short id. Caller commits."""
        short_id = generate_short_id()
        while short_id == PREVIEW_SHORT_ID or self.find_by_short_id(short_id) is not None:
            short_id = generate_short_id()

        qr_code = QrCode(
            short_id=short_id,
            owner_id=owner_id,
            target_url=target_url,
            title=title,
            text_content=text_content,
            show_title=show_title,
            show_text=show_text,
            qr_options=qr_options or {},
            scan_count=0,
        )
        self._db.add(qr_code)
        self._db.flush()
        return qr_code

    def delete_owned(self, short_id: str, owner_id: str) -> None:
        """Delete a QR code; only its owner may do so. Caller commits."""
        qr_code = self.get_owned(short_id, owner_id)
        self._db.delete(qr_code)

    def record_scan(self, qr_code_id: str, scanned_at: datetime) -> bool:
        """Increment the scan counter at the storage layer.

        A single ``UPDATE ... SET scan_count = scan_count + 1`` so concurrent
        scans never lose increments.
        """
        result = self._db.execute(
            update(QrCode)
            .where(QrCode.id == qr_code_id)
            .values(scan_count=QrCode.scan_count + 1, last_scanned=scanned_at)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def add_scan_event(self, qr_code: QrCode, scanned_at: datetime, **fields: str | None) -> ScanEvent:
        """Append a scan event. Caller commits."""
        event = ScanEvent(
            qr_code_id=qr_code.id,
            short_id=qr_code.short_id,
            scanned_at=scanned_at,
            **fields,
        )
        self._db.add(event)
        return event

    def recent_scans(self, qr_code_id: str, limit: int | None = None) -> Sequence[ScanEvent]:
        """Scan events for a QR code, newest first."""
        query = (
            self._db.query(ScanEvent)
            .filter(ScanEvent.qr_code_id == qr_code_id)
            .order_by(ScanEvent.scanned_at.desc())
        )
        if limit is not None:
            query = query.limit(limit)
        return query.all()

    def totals(self) -> tuple[int, int]:
        """Site-wide (code count, scan count)."""
        count, scans = self._db.query(func.count(QrCode.id), func.sum(QrCode.scan_count)).one()
        return count, scans or 0
