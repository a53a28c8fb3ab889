"""Service for logging security events."""

import logging

from fastapi import Request
from sqlalchemy.orm import Session

from qr_service.models.security_audit_log import SecurityAuditLog
from qr_service.rate_limiter import client_address
from qr_service.services.scan_context import ScanContext

logger = logging.getLogger(__name__)


class SecurityEventType:
    """Constants for security event types."""

    REGISTERED = "registered"
    LOGIN_SUCCESS = "login_success"
    LOGIN_FAILED = "login_failed"
    LOGIN_BLOCKED_UNVERIFIED = "login_blocked_unverified"
    LOGOUT = "logout"
    EMAIL_VERIFIED = "email_verified"
    VERIFICATION_EMAIL_FAILED = "verification_email_failed"
    PASSWORD_CHANGED = "password_changed"
    PASSWORD_RESET_REQUESTED = "password_reset_requested"
    PASSWORD_RESET_COMPLETED = "password_reset_completed"


class SecurityAuditService:
    """Service for recording security audit events."""

    @staticmethod
    def log_event(
        db: Session,
        event_type: str,
        user_id: str | None = None,
        ip_address: str | None = None,
        user_agent: str | None = None,
        details: dict | None = None,
    ) -> None:
        """Log a security event to the database."""
        log_entry = SecurityAuditLog(
            user_id=user_id,
            event_type=event_type,
            ip_address=ip_address,
            user_agent=user_agent,
            details=details or None,
        )
        db.add(log_entry)
        # Note: Caller is responsible for committing the transaction

        # Also log to application logger for monitoring
        logger.info(
            f"Security event: {event_type} | user_id={user_id} | ip={ip_address}"
        )

    @staticmethod
    def get_request_info(request: Request | None) -> tuple[str | None, str | None]:
        """Extract client address and user agent from a request."""
        if request is None:
            return None, None
        return client_address(request), request.headers.get("User-Agent", "")[:500]

    @staticmethod
    def client_details(request: Request) -> dict[str, str]:
        """Device, browser, OS and location of the client, omitting unknowns."""
        context = ScanContext.from_request(request)
        fields = {
            "device": context.device,
            "browser": context.browser,
            "os": context.os,
            "location": context.location,
        }
        return {key: value for key, value in fields.items() if value}
