"""Authentication router."""

import logging
from datetime import UTC, datetime

from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy.orm import Session

from qr_service.config import settings
from qr_service.database import get_db
from qr_service.dependencies.auth import (
    get_current_user,
    get_session_claims,
    session_token_from_request,
)
from qr_service.errors import AuthError, EmailDeliveryError, UnverifiedAccountError, ValidationError
from qr_service.models import User
from qr_service.rate_limiter import limiter
from qr_service.schemas.auth import (
    ChangePasswordRequest,
    ForgotPasswordRequest,
    MessageResponse,
    RegisterResponse,
    ResendVerificationRequest,
    ResetPasswordRequest,
    SessionClaims,
    SignInResponse,
    UserOut,
    UserRegister,
    UserSignIn,
    VerifyEmailRequest,
)
from qr_service.services.auth_service import AuthService
from qr_service.services.email_service import EmailService
from qr_service.services.repositories import UserRepository
from qr_service.services.scan_context import ScanContext
from qr_service.services.security_audit_service import SecurityAuditService, SecurityEventType
from qr_service.services.session_issuer import AuthFailure, SessionIssuer
from qr_service.services.verification_service import TokenKind, VerificationService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["authentication"])

REGISTERED_MESSAGE = (
    "Registration successful! A verification email has been sent to your address. "
    "The verification link will be valid for 24 hours."
)
REGISTERED_EMAIL_DELAYED_MESSAGE = (
    "Registration successful, but we could not send the verification email right now. "
    "It may be delayed; you can request a new link from the sign-in page."
)

# Error raised for each sign-in failure
_FAILURE_ERRORS = {
    AuthFailure.NO_SUCH_USER: AuthError,
    AuthFailure.INVALID_CREDENTIALS: AuthError,
    AuthFailure.UNVERIFIED_ACCOUNT: UnverifiedAccountError,
}


def safe_redirect(callback_url: str | None) -> str:
    """Only same-site relative paths are honored as post-login redirects."""
    if callback_url and callback_url.startswith("/") and not callback_url.startswith("//"):
        return callback_url
    return "/"


def _set_session_cookie(response: Response, token: str, expires_at: datetime) -> None:
    response.set_cookie(
        key=settings.session_cookie_name,
        value=token,
        max_age=int((expires_at - datetime.now(UTC)).total_seconds()),
        httponly=True,
        secure=settings.session_cookie_secure,
        samesite="lax",
    )


def _notify_login(claims: SessionClaims, request: Request) -> None:
    """Best-effort "new login" email."""
    context = ScanContext.from_request(request)
    try:
        EmailService.send_login_notification(
            claims.email,
            claims.name,
            datetime.now(UTC).strftime("%Y-%m-%d %H:%M UTC"),
            context.browser or "Unknown",
            context.os or "Unknown",
            context.location or "Unknown",
        )
    except EmailDeliveryError as e:
        logger.warning(f"Login notification for {claims.email} not sent: {e}")


@router.post("/register", response_model=RegisterResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit("5/minute")
def register(request: Request, data: UserRegister, db: Session = Depends(get_db)) -> dict:
    """Register a new user and send verification email.

    The account is created even if the email cannot be sent; ``email_sent``
    tells the caller whether to warn the user.
    """
    ip_address, user_agent = SecurityAuditService.get_request_info(request)
    users = UserRepository(db)

    existing = users.find_by_email(data.email)
    if existing:
        if not existing.is_verified:
            raise ValidationError(
                "Your account is not verified yet. Please verify your account via email.",
                code="account_not_verified",
            )
        raise ValidationError("User already exists", code="user_exists")

    user = users.create(data.email, AuthService.hash_password(data.password))
    SecurityAuditService.log_event(
        db, SecurityEventType.REGISTERED, user_id=user.id,
        ip_address=ip_address, user_agent=user_agent
    )
    db.commit()

    email_sent = True
    try:
        VerificationService(db).issue_token(user.id, TokenKind.VERIFY)
    except EmailDeliveryError as e:
        email_sent = False
        logger.error(f"Verification email for {user.email} not sent: {e}")
        SecurityAuditService.log_event(
            db, SecurityEventType.VERIFICATION_EMAIL_FAILED, user_id=user.id,
            ip_address=ip_address, user_agent=user_agent
        )
        db.commit()

    logger.info(f"User registered (pending verification): {user.email}")
    return {
        "success": True,
        "message": REGISTERED_MESSAGE if email_sent else REGISTERED_EMAIL_DELAYED_MESSAGE,
        "email_sent": email_sent,
        "user": UserOut.model_validate(user),
    }


@router.post("/signin", response_model=SignInResponse)
@limiter.limit("5/minute")
def signin(
    request: Request, response: Response, data: UserSignIn, db: Session = Depends(get_db)
) -> dict:
    """Sign in with email and password; returns the session token and sets it as a cookie."""
    ip_address, user_agent = SecurityAuditService.get_request_info(request)

    result = SessionIssuer(db).authenticate(data.email, data.password)

    if isinstance(result, AuthFailure):
        failure = result
        if failure is AuthFailure.NO_SUCH_USER and not settings.reveal_auth_failure_reason:
            failure = AuthFailure.INVALID_CREDENTIALS

        event = (
            SecurityEventType.LOGIN_BLOCKED_UNVERIFIED
            if failure is AuthFailure.UNVERIFIED_ACCOUNT
            else SecurityEventType.LOGIN_FAILED
        )
        SecurityAuditService.log_event(
            db, event, ip_address=ip_address, user_agent=user_agent,
            details={
                "email": data.email,
                "reason": result.value,
                **SecurityAuditService.client_details(request),
            },
        )
        db.commit()

        message = failure.message
        if failure is AuthFailure.INVALID_CREDENTIALS and not settings.reveal_auth_failure_reason:
            message = "Invalid email or password"
        raise _FAILURE_ERRORS[failure](message, code=failure.value)

    token, expires_at = SessionIssuer.issue(result)
    _set_session_cookie(response, token, expires_at)

    SecurityAuditService.log_event(
        db, SecurityEventType.LOGIN_SUCCESS, user_id=result.id,
        ip_address=ip_address, user_agent=user_agent,
        details=SecurityAuditService.client_details(request),
    )
    db.commit()

    if settings.login_notifications_enabled:
        _notify_login(result, request)

    logger.info(f"User signed in: {result.email}")
    return {
        "access_token": token,
        "token_type": "bearer",
        "expires_at": expires_at,
        "user": result,
        "redirect": safe_redirect(data.callback_url),
    }


@router.post("/signout", response_model=MessageResponse)
def signout(
    request: Request, response: Response, db: Session = Depends(get_db)
) -> dict:
    """Clear the session cookie. Tokens are stateless, so there is nothing to revoke."""
    token = session_token_from_request(request)
    claims = SessionIssuer.verify(token) if token else None
    response.delete_cookie(settings.session_cookie_name)
    if claims:
        ip_address, user_agent = SecurityAuditService.get_request_info(request)
        SecurityAuditService.log_event(
            db, SecurityEventType.LOGOUT, user_id=claims.id,
            ip_address=ip_address, user_agent=user_agent
        )
        db.commit()
    return {"message": "Successfully signed out"}


@router.post("/verify-email", response_model=MessageResponse)
def verify_email(data: VerifyEmailRequest, db: Session = Depends(get_db)) -> dict:
    """Verify email with token from email link."""
    user = VerificationService(db).redeem(data.token, TokenKind.VERIFY)

    SecurityAuditService.log_event(db, SecurityEventType.EMAIL_VERIFIED, user_id=user.id)
    db.commit()

    logger.info(f"Email verified for user: {user.email}")
    return {"message": "Email verified successfully. You can now sign in."}


@router.post("/resend-verification", response_model=MessageResponse)
@limiter.limit("1/minute")
def resend_verification(
    request: Request, data: ResendVerificationRequest, db: Session = Depends(get_db)
) -> dict:
    """Resend verification email."""
    user = UserRepository(db).find_by_email(data.email)

    if user and not user.is_verified:
        try:
            VerificationService(db).issue_token(user.id, TokenKind.VERIFY)
            logger.info(f"Verification email resent to: {user.email}")
        except EmailDeliveryError as e:
            logger.error(f"Verification email for {user.email} not resent: {e}")

    # Always return success (don't reveal if email exists)
    return {"message": "If that email exists and is unverified, we sent a new verification link."}


@router.post("/forgot-password", response_model=MessageResponse)
@limiter.limit("3/hour")
def forgot_password(
    request: Request, data: ForgotPasswordRequest, db: Session = Depends(get_db)
) -> dict:
    """Request password reset email."""
    ip_address, user_agent = SecurityAuditService.get_request_info(request)
    user = UserRepository(db).find_by_email(data.email)

    if user and user.is_verified:
        SecurityAuditService.log_event(
            db, SecurityEventType.PASSWORD_RESET_REQUESTED, user_id=user.id,
            ip_address=ip_address, user_agent=user_agent
        )
        try:
            VerificationService(db).issue_token(user.id, TokenKind.RESET)
            logger.info(f"Password reset email sent to: {user.email}")
        except EmailDeliveryError as e:
            logger.error(f"Password reset email for {user.email} not sent: {e}")

    # Always return success (don't reveal if email exists)
    return {"message": "If that email exists, we sent a password reset link."}


@router.post("/reset-password", response_model=MessageResponse)
def reset_password(
    request: Request, data: ResetPasswordRequest, db: Session = Depends(get_db)
) -> dict:
    """Reset password with token from email."""
    ip_address, user_agent = SecurityAuditService.get_request_info(request)
    user = VerificationService(db).redeem(data.token, TokenKind.RESET, data.new_password)

    SecurityAuditService.log_event(
        db, SecurityEventType.PASSWORD_RESET_COMPLETED, user_id=user.id,
        ip_address=ip_address, user_agent=user_agent
    )
    db.commit()

    try:
        EmailService.send_password_changed_notification(user.email)
    except EmailDeliveryError as e:
        logger.warning(f"Password change notification for {user.email} not sent: {e}")

    logger.info(f"Password reset for user: {user.email}")
    return {"message": "Password reset successfully. You can now sign in with your new password."}


@router.put("/change-password", response_model=MessageResponse)
def change_password(
    request: Request,
    data: ChangePasswordRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> dict:
    """Change password while signed in."""
    ip_address, user_agent = SecurityAuditService.get_request_info(request)

    if not AuthService.verify_password(data.current_password, current_user.password_hash):
        raise AuthError("Current password is incorrect", code="invalid_credentials")

    current_user.password_hash = AuthService.hash_password(data.new_password)
    SecurityAuditService.log_event(
        db, SecurityEventType.PASSWORD_CHANGED, user_id=current_user.id,
        ip_address=ip_address, user_agent=user_agent
    )
    db.commit()

    try:
        EmailService.send_password_changed_notification(current_user.email)
    except EmailDeliveryError as e:
        logger.warning(f"Password change notification for {current_user.email} not sent: {e}")

    logger.info(f"Password changed for user: {current_user.email}")
    return {"message": "Password changed successfully."}


@router.get("/me", response_model=SessionClaims)
def get_me(claims: SessionClaims = Depends(get_session_claims)) -> SessionClaims:
    """Get the current session's identity claims."""
    return claims

