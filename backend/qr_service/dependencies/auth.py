"""Authentication dependencies for protected routes."""

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from qr_service.config import settings
from qr_service.database import get_db
from qr_service.models import User
from qr_service.schemas.auth import SessionClaims
from qr_service.services.session_issuer import SessionIssuer

security = HTTPBearer(auto_error=False)


def session_token_from_request(
    request: Request, credentials: HTTPAuthorizationCredentials | None = None
) -> str | None:
    """Bearer token if present, else the session cookie."""
    if credentials and credentials.credentials:
        return credentials.credentials

    scheme, _, param = request.headers.get("Authorization", "").partition(" ")
    if scheme.lower() == "bearer" and param.strip():
        return param.strip()

    return request.cookies.get(settings.session_cookie_name) or None


def get_session_claims_optional(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> SessionClaims | None:
    """
    Get the caller's session claims if authenticated, None otherwise.

    Reuses the claims the access gate already verified for this request.
    """
    claims = getattr(request.state, "session_claims", None)
    if claims is not None:
        return claims

    token = session_token_from_request(request, credentials)
    if not token:
        return None
    return SessionIssuer.verify(token)


def get_session_claims(
    claims: SessionClaims | None = Depends(get_session_claims_optional),
) -> SessionClaims:
    """
    Require a valid session.

    Usage:
        @router.get("/protected")
        def protected_route(claims: SessionClaims = Depends(get_session_claims)):
            return {"user_id": claims.id}
    """
    if claims is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return claims


def get_current_user(
    claims: SessionClaims = Depends(get_session_claims),
    db: Session = Depends(get_db),
) -> User:
    """Load the account behind the session; a deleted account is unauthenticated."""
    user = db.query(User).filter(User.id == claims.id).first()

    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return user
