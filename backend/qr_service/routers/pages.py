"""Page shells: sign-in and registration pages, emailed links, and the signed-in pages."""

import logging

from fastapi import APIRouter, Depends, Query
from fastapi.responses import HTMLResponse
from sqlalchemy.orm import Session

from qr_service.config import settings
from qr_service.database import get_db
from qr_service.dependencies.admin import get_admin_user
from qr_service.dependencies.auth import (
    get_current_user,
    get_session_claims,
    get_session_claims_optional,
)
from qr_service.errors import InvalidOrExpiredToken
from qr_service.models import User
from qr_service.routers.admin import site_stats
from qr_service.routers.auth import safe_redirect
from qr_service.schemas.auth import SessionClaims
from qr_service.services.export_service import summarize
from qr_service.services.repositories import QrCodeRepository
from qr_service.services.security_audit_service import SecurityAuditService, SecurityEventType
from qr_service.services.verification_service import TokenKind, VerificationService
from qr_service.templating import render_template

logger = logging.getLogger(__name__)

router = APIRouter(tags=["pages"], include_in_schema=False)

_EMAIL = {"name": "email", "label": "Email", "type": "email"}
_PASSWORD = {"name": "password", "label": "Password", "type": "password"}
_NEW_PASSWORD = {"name": "new_password", "label": "New password", "type": "password"}


def _page(template_name: str, title: str, status_code: int = 200, **context) -> HTMLResponse:
    context.setdefault("claims", None)
    content = render_template(
        template_name, {"title": title, "app_name": settings.app_name, **context}
    )
    return HTMLResponse(content, status_code=status_code)


@router.get("/auth/signin")
def signin_page(callback_url: str | None = Query(None, alias="callbackUrl")):
    return _page(
        "auth_form.html",
        "Sign in",
        action="/api/auth/signin",
        fields=[_EMAIL, _PASSWORD],
        hidden={"callbackUrl": safe_redirect(callback_url)},
        submit="Sign in",
        links=[
            {"href": "/auth/register", "label": "Create an account"},
            {"href": "/auth/request-reset-password", "label": "Forgot your password?"},
        ],
    )


@router.get("/auth/register")
def register_page():
    return _page(
        "auth_form.html",
        "Register",
        action="/api/auth/register",
        fields=[_EMAIL, _PASSWORD],
        hidden={},
        submit="Register",
        links=[{"href": "/auth/signin", "label": "Already registered? Sign in"}],
    )


@router.get("/auth/request-reset-password")
def request_reset_page():
    return _page(
        "auth_form.html",
        "Reset your password",
        action="/api/auth/forgot-password",
        fields=[_EMAIL],
        hidden={},
        submit="Send reset link",
        links=[{"href": "/auth/signin", "label": "Back to sign in"}],
    )


@router.get("/verifyemail")
@router.get("/auth/verifyemail")
def verify_email_page(token: str = Query(""), db: Session = Depends(get_db)):
    """Landing page for the emailed verification link; redeems the token."""
    signin_link = {"href": "/auth/signin", "label": "Sign in"}
    try:
        if not token:
            raise InvalidOrExpiredToken("Invalid or expired verification token")
        user = VerificationService(db).redeem(token, TokenKind.VERIFY)
    except InvalidOrExpiredToken as e:
        return _page(
            "message.html", "Email verification", 400, message=e.message, error=True, link=signin_link
        )

    SecurityAuditService.log_event(db, SecurityEventType.EMAIL_VERIFIED, user_id=user.id)
    db.commit()
    logger.info(f"Email verified for user: {user.email}")
    return _page(
        "message.html",
        "Email verification",
        message="Email verified successfully. You can now sign in.",
        link=signin_link,
    )


@router.get("/reset-password")
@router.get("/auth/reset-password")
def reset_password_page(token: str = Query(""), db: Session = Depends(get_db)):
    """Landing page for the emailed reset link; checks the token without consuming it."""
    try:
        if not token:
            raise InvalidOrExpiredToken("Invalid or expired reset token")
        VerificationService(db).check_reset_token(token)
    except InvalidOrExpiredToken as e:
        return _page(
            "message.html",
            "Reset your password",
            400,
            message=e.message,
            error=True,
            link={"href": "/auth/request-reset-password", "label": "Request a new link"},
        )

    return _page(
        "auth_form.html",
        "Choose a new password",
        action="/api/auth/reset-password",
        fields=[_NEW_PASSWORD],
        hidden={"token": token},
        submit="Reset password",
        links=[{"href": "/auth/signin", "label": "Back to sign in"}],
    )


@router.get("/dashboard")
def dashboard_page(
    db: Session = Depends(get_db),
    claims: SessionClaims = Depends(get_session_claims),
):
    codes = QrCodeRepository(db).find_by_owner(claims.id)
    return _page("dashboard.html", "Dashboard", claims=claims, codes=codes, summary=summarize(codes))


@router.get("/profile")
def profile_page(
    current_user: User = Depends(get_current_user),
    claims: SessionClaims | None = Depends(get_session_claims_optional),
):
    return _page("profile.html", "Profile", claims=claims, user=current_user)


@router.get("/admin")
def admin_page(
    db: Session = Depends(get_db),
    admin: User = Depends(get_admin_user),
    claims: SessionClaims | None = Depends(get_session_claims_optional),
):
    return _page("admin.html", "Admin", claims=claims, stats=site_stats(db))
