"""Main FastAPI application."""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from qr_service.config import settings
from qr_service.errors import AppError, DependencyError, ValidationError
from qr_service.middleware.access_gate import AccessGateMiddleware
from qr_service.middleware.security_headers import SecurityHeadersMiddleware
from qr_service.rate_limiter import limiter

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title="QR Service API",
    description="Dynamic QR codes with scan tracking",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

# Add rate limiter to app state and exception handler
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Map application errors to JSON; dependency failures get a generic message."""
    if isinstance(exc, DependencyError):
        logger.error(f"{exc.code} on {request.method} {request.url.path}: {exc.message}")
        detail = exc.public_message
    else:
        detail = exc.message
    content = {"detail": detail, "code": exc.code}
    if isinstance(exc, ValidationError) and len(exc.errors) > 1:
        content["errors"] = exc.errors
    return JSONResponse(status_code=exc.status_code, content=content)


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Malformed request bodies are reported as 400 with one message per problem."""
    errors = []
    for error in exc.errors():
        field = ".".join(str(part) for part in error["loc"] if part != "body")
        errors.append(f"{field}: {error['msg']}" if field else error["msg"])
    return JSONResponse(
        status_code=400,
        content={"success": False, "message": "Validation errors", "errors": errors},
    )


# Middleware added last runs first: security headers wrap everything, then CORS,
# then the access gate in front of the routes
app.add_middleware(AccessGateMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(SecurityHeadersMiddleware)


@app.get("/")
async def root():
    """Root endpoint."""
    return {"message": "QR Service API", "version": "0.1.0", "status": "running"}


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}


# Import and include routers
from qr_service.routers import admin, auth, export, pages, qr_codes, resolve  # noqa: E402

app.include_router(auth.router, prefix="/api")
app.include_router(admin.router)
app.include_router(qr_codes.router)
app.include_router(resolve.router)
app.include_router(export.router)
app.include_router(pages.router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("qr_service.main:app", host="0.0.0.0", port=8000, reload=settings.debug)
