"""SQLAlchemy ORM models."""

from qr_service.models.qr_code import QrCode
from qr_service.models.scan_event import ScanEvent
from qr_service.models.security_audit_log import SecurityAuditLog
from qr_service.models.user import User, UserRole

__all__ = [
    "QrCode",
    "ScanEvent",
    "SecurityAuditLog",
    "User",
    "UserRole",
]
