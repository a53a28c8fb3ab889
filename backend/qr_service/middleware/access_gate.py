"""Access gate: per-client rate limiting and route classification.

Runs before routing on every request that is not excluded. The decision is a
plain value (``Allow``, ``Redirect`` or ``Reject``) so it can be tested without
a running app; ``AccessGateMiddleware`` turns it into a response.
"""

import logging
from dataclasses import dataclass, field
from urllib.parse import quote

from fastapi import Request
from fastapi.responses import JSONResponse, RedirectResponse
from starlette.middleware.base import BaseHTTPMiddleware

from qr_service.dependencies.auth import session_token_from_request
from qr_service.errors import AppError, AuthError, RateLimitError
from qr_service.rate_limiter import ClientRateLimiter, client_address, client_limiter
from qr_service.schemas.auth import SessionClaims
from qr_service.services.session_issuer import SessionIssuer

logger = logging.getLogger(__name__)

SIGNIN_PATH = "/auth/signin"
HOME_PATH = "/"

# Never gated: service banner, the token issuance API, and static/doc assets
EXCLUDED_PATHS = frozenset({"/", "/health", "/openapi.json"})
EXCLUDED_PREFIXES = ("/api/auth", "/static", "/assets", "/docs", "/redoc")

# Reachable without a session
PUBLIC_PATHS = frozenset(
    {
        "/auth/signin",
        "/auth/register",
        "/auth/request-reset-password",
        "/auth/reset-password",
        "/auth/verifyemail",
        "/verifyemail",
        "/reset-password",
        "/qr/resolve",
    }
)

# Only for signed-out visitors; a signed-in user is sent home
AUTH_RESTRICTED_PATHS = PUBLIC_PATHS - {"/qr/resolve"}


@dataclass(frozen=True)
class Allow:
    claims: SessionClaims | None = None


@dataclass(frozen=True)
class Redirect:
    target: str


@dataclass(frozen=True)
class Reject:
    status_code: int
    detail: str
    headers: dict[str, str] = field(default_factory=dict)
    code: str = AppError.code

    @classmethod
    def from_error(cls, error: AppError, headers: dict[str, str] | None = None) -> "Reject":
        return cls(error.status_code, error.message, headers or {}, error.code)


Decision = Allow | Redirect | Reject


def is_excluded(path: str) -> bool:
    """Static files, docs and the auth issuance API bypass the gate."""
    if path in EXCLUDED_PATHS:
        return True
    if any(path == prefix or path.startswith(prefix + "/") for prefix in EXCLUDED_PREFIXES):
        return True
    # Files such as /favicon.ico or /logo.png
    return "." in path.rsplit("/", 1)[-1]


def _normalize(path: str) -> str:
    return path.rstrip("/") or "/"


def callback_target(request: Request) -> str:
    """Sign-in URL that returns the visitor to the page they asked for."""
    requested = request.url.path
    if request.url.query:
        requested = f"{requested}?{request.url.query}"
    return f"{SIGNIN_PATH}?callbackUrl={quote(requested, safe='/')}"


class AccessGate:
    """Decides whether a request proceeds, is redirected or is rejected."""

    def __init__(self, limiter: ClientRateLimiter = client_limiter) -> None:
        self.limiter = limiter

    def _claims(self, request: Request) -> SessionClaims | None:
        """Verify the session token, treating any fault as signed out."""
        try:
            token = session_token_from_request(request)
            if not token:
                return None
            return SessionIssuer.verify(token)
        except Exception:
            logger.exception(f"Session verification failed for {request.url.path}")
            return None

    def authorize(self, request: Request) -> Decision:
        key = client_address(request)
        if not self.limiter.hit(key):
            error = RateLimitError(retry_after=self.limiter.retry_after(key))
            logger.warning(f"Rate limit exceeded for client {key} on {request.url.path}")
            return Reject.from_error(error, {"Retry-After": str(error.retry_after)})

        path = _normalize(request.url.path)
        claims = self._claims(request)

        if path in PUBLIC_PATHS:
            if claims is not None and path in AUTH_RESTRICTED_PATHS:
                return Redirect(HOME_PATH)
            return Allow(claims)

        if claims is not None:
            return Allow(claims)

        if path == "/api" or path.startswith("/api/"):
            return Reject.from_error(
                AuthError("Not authenticated"), {"WWW-Authenticate": "Bearer"}
            )
        return Redirect(callback_target(request))


class AccessGateMiddleware(BaseHTTPMiddleware):
    """Applies ``AccessGate`` decisions to every non-excluded request."""

    def __init__(self, app, gate: AccessGate | None = None):
        super().__init__(app)
        self.gate = gate or AccessGate()

    async def dispatch(self, request: Request, call_next):
        if is_excluded(request.url.path):
            return await call_next(request)

        decision = self.gate.authorize(request)
        if isinstance(decision, Redirect):
            return RedirectResponse(decision.target, status_code=302)
        if isinstance(decision, Reject):
            return JSONResponse(
                status_code=decision.status_code,
                content={"detail": decision.detail, "code": decision.code},
                headers=decision.headers,
            )

        request.state.session_claims = decision.claims
        return await call_next(request)
