"""Application configuration."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    # Database
    database_url: str = "sqlite:///./qr_service.db"

    # Session tokens
    jwt_secret_key: str = "change-me-in-production"  # Generate with: openssl rand -hex 32
    jwt_algorithm: str = "HS256"
    session_token_expire_days: int = 30
    session_cookie_name: str = "session_token"
    session_cookie_secure: bool = False

    # Verification / password reset tokens
    token_secret: str = ""  # Falls back to jwt_secret_key
    verification_token_expire_hours: int = 24
    reset_token_expire_hours: int = 1

    # Public URL used in emailed links and printed QR codes
    public_base_url: str = "http://localhost:8000"

    # Email (SendGrid)
    sendgrid_api_key: str = ""
    email_from_address: str = "no-reply@example.com"
    email_from_name: str = "QR Service"
    email_timeout_seconds: float = 10.0
    login_notifications_enabled: bool = False

    # Rate limiting
    rate_limit_storage_uri: str = "memory://"  # redis://host:6379 for multi-process deployments
    rate_limit_per_client: str = "120/minute"

    # Sign-in failures: distinguish "no such user" from "wrong password"
    reveal_auth_failure_reason: bool = True

    # Export
    export_timeout_seconds: float = 30.0
    export_workers: int = 4

    # Application
    app_name: str = "QR Service"
    log_level: str = "INFO"
    debug: bool = True

    # CORS
    allowed_origins: list[str] = ["http://localhost:3000", "http://localhost:5173"]

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=False, extra="ignore"
    )

    @property
    def signing_secret(self) -> str:
        """Secret used to derive verification and reset tokens."""
        return self.token_secret or self.jwt_secret_key


settings = Settings()
