"""Resolve a scanned QR code to its live target and record the scan."""

import logging
from datetime import UTC, datetime
from urllib.parse import urlencode, urlsplit

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from qr_service.errors import NotFoundError
from qr_service.models import QrCode
from qr_service.services.repositories import QrCodeRepository
from qr_service.services.scan_context import ScanContext

logger = logging.getLogger(__name__)


def is_redirectable(url: str | None) -> bool:
    """Only absolute http(s) URLs are followed."""
    if not url:
        return False
    parts = urlsplit(url)
    return parts.scheme in ("http", "https") and bool(parts.netloc)


class RedirectResolver:
    """Scan-time resolution of ``shortId`` to a redirect target.

    Saved codes redirect to their stored target and count the scan. Unsaved
    live previews (and unknown ids) redirect to the URL carried in the code
    itself and record nothing. Tracking is best-effort: a failure while
    recording never prevents the redirect.
    """

    def __init__(self, db: Session) -> None:
        self._db = db
        self._codes = QrCodeRepository(db)

    def resolve(
        self,
        short_id: str,
        fallback_target_url: str | None,
        context: ScanContext | None = None,
    ) -> str:
        """Return the URL to redirect the scanner to.

        Raises NotFoundError when there is no saved record and no usable
        fallback URL.
        """
        fallback = fallback_target_url if is_redirectable(fallback_target_url) else None

        try:
            qr_code = self._codes.find_by_short_id(short_id) if short_id else None
        except SQLAlchemyError:
            logger.exception(f"QR lookup failed for {short_id}, using fallback target")
            self._db.rollback()
            qr_code = None

        if qr_code is None:
            if fallback is None:
                raise NotFoundError("QR code", short_id or "")
            return fallback

        self._record_scan(qr_code, context or ScanContext())
        return qr_code.target_url

    def _record_scan(self, qr_code: QrCode, context: ScanContext) -> None:
        """Count the scan and append the event, swallowing storage failures."""
        scanned_at = datetime.now(UTC)
        try:
            self._codes.record_scan(qr_code.id, scanned_at)
            self._codes.add_scan_event(qr_code, scanned_at, **context.as_fields())
            self._db.commit()
        except Exception:
            # Scan tracking is best-effort; the redirect still happens
            logger.exception(f"Failed to record scan for {qr_code.short_id}")
            self._db.rollback()


def scan_url(base_url: str, short_id: str, target_url: str) -> str:
    """The URL encoded into a printed QR code."""
    query = urlencode({"shortId": short_id, "targetUrl": target_url})
    return f"{base_url.rstrip('/')}/qr/resolve?{query}"
