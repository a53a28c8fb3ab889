"""Services layer - business logic and external integrations.

- auth_service / session_issuer: password hashing, credential sign-in, session tokens
- verification_service / email_service: emailed single-use tokens
- redirect_resolver / scan_context: scan-time redirects and tracking
- export_service: PDF and Excel exports
- repositories/: Data access layer
"""

from qr_service.services.repositories import QrCodeRepository, UserRepository

__all__ = ["QrCodeRepository", "UserRepository"]
