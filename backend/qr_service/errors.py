"""Application error taxonomy.

Each error carries the HTTP status it maps to and a short machine-readable
code. Validation and auth errors are safe to show to the caller verbatim;
dependency errors are logged in full and surfaced as a generic message.
"""


class AppError(Exception):
    """Base class for errors surfaced through the API."""

    status_code: int = 500
    code: str = "error"

    def __init__(self, message: str, *, code: str | None = None):
        self.message = message
        if code is not None:
            self.code = code
        super().__init__(message)


class ValidationError(AppError):
    """Malformed or unacceptable input."""

    status_code = 400
    code = "validation_error"

    def __init__(self, message: str, errors: list[str] | None = None, *, code: str | None = None):
        self.errors = errors or [message]
        super().__init__(message, code=code)


class AuthError(AppError):
    """Bad credentials, unverified account, or an invalid session."""

    status_code = 401
    code = "auth_error"


class UnverifiedAccountError(AuthError):
    """Correct credentials for an account whose email is not verified yet."""

    status_code = 403
    code = "unverified_account"


class InvalidOrExpiredToken(AuthError):
    """Verification or reset token that does not match or has expired."""

    status_code = 400
    code = "invalid_or_expired_token"

    def __init__(self, message: str = "Invalid or expired token"):
        super().__init__(message)


class NotFoundError(AppError):
    """Entity not found, or not visible to the caller."""

    status_code = 404
    code = "not_found"

    def __init__(self, entity_type: str, identifier: str | int):
        self.entity_type = entity_type
        self.identifier = identifier
        super().__init__(f"{entity_type} not found: {identifier}")


class RateLimitError(AppError):
    """Client exceeded its request budget."""

    status_code = 429
    code = "rate_limited"

    def __init__(self, message: str = "Too many requests", retry_after: int | None = None):
        self.retry_after = retry_after
        super().__init__(message)


class DependencyError(AppError):
    """Failure of an outside collaborator (storage, email, document rendering)."""

    status_code = 500
    code = "dependency_error"
    public_message = "Something went wrong. Please try again later."


class EmailDeliveryError(DependencyError):
    """Outbound email could not be delivered."""

    code = "email_delivery_failed"


class DocumentGenerationError(DependencyError):
    """Export document could not be produced."""

    code = "document_generation_failed"
