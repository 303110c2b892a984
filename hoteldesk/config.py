"""
Application configuration.

Loads settings from environment variables with sensible defaults.
Signing secrets have no defaults: the token issuer refuses to start
without them.
"""

from __future__ import annotations

from functools import lru_cache
from urllib.parse import urlparse

from pydantic_settings import BaseSettings


OAUTH_CALLBACK_PATH = "/api/auth/google/callback"


class ConfigurationError(RuntimeError):
    """Fatal misconfiguration detected at startup."""
    pass


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    # ==========================================================================
    # Environment
    # ==========================================================================

    environment: str = "development"
    debug: bool = True
    log_level: str = "INFO"

    # ==========================================================================
    # API Server
    # ==========================================================================

    api_host: str = "0.0.0.0"
    api_port: int = 3001
    cors_origins: str = "http://localhost:5173"
    app_base_url: str = ""

    # ==========================================================================
    # Authentication
    # ==========================================================================

    # Browser session (cookie) tokens
    jwt_secret: str = ""
    jwt_expires_in: int = 7 * 24 * 3600  # seconds, 0 disables expiry
    auth_cookie_name: str = "auth_token"
    session_max_age: int | None = None  # seconds
    session_secure: bool | None = None

    # Bearer API tokens
    jwt_access_secret: str = ""
    jwt_access_expires_in: int = 15 * 60  # seconds
    jwt_algorithm: str = "HS256"

    bcrypt_rounds: int = 12
    exchange_code_ttl_seconds: int = 60
    password_reset_ttl_minutes: int = 30

    # None means "expose outside production only"
    expose_reset_token: bool | None = None

    # Google OAuth (optional)
    google_oauth_client_id: str = ""
    google_oauth_client_secret: str = ""
    google_callback_url: str = ""

    # ==========================================================================
    # AWS (password reset e-mails)
    # ==========================================================================

    aws_region: str = "us-east-1"
    aws_access_key_id: str = ""
    aws_secret_access_key: str = ""
    aws_ses_from_email: str = ""

    # ==========================================================================
    # Optional Services
    # ==========================================================================

    sentry_dsn: str = ""

    # ==========================================================================
    # Helpers
    # ==========================================================================

    @property
    def cors_origins_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def base_url(self) -> str:
        """Frontend base URL used for redirects and e-mailed links."""
        if self.app_base_url:
            return self.app_base_url.rstrip("/")
        origins = self.cors_origins_list
        return (origins[0] if origins else "http://localhost:5173").rstrip("/")

    @property
    def cookie_secure(self) -> bool:
        if self.session_secure is not None:
            return self.session_secure
        return self.is_production

    @property
    def reset_token_exposed(self) -> bool:
        """Whether raw reset tokens may be returned in HTTP responses."""
        if self.expose_reset_token is not None:
            return self.expose_reset_token and not self.is_production
        return not self.is_production

    @property
    def google_oauth_enabled(self) -> bool:
        return bool(self.google_oauth_client_id and self.google_oauth_client_secret)

    @property
    def use_aws(self) -> bool:
        """Whether AWS services should be used."""
        return bool(self.aws_access_key_id and self.aws_secret_access_key)

    @property
    def resolved_google_callback_url(self) -> str:
        """
        The OAuth redirect URI registered with Google.

        An explicit GOOGLE_CALLBACK_URL must point at the API callback path.
        """
        if self.google_callback_url:
            path = urlparse(self.google_callback_url).path.rstrip("/")
            if path != OAUTH_CALLBACK_PATH:
                raise ConfigurationError(
                    f"Invalid GOOGLE_CALLBACK_URL path: expected '{OAUTH_CALLBACK_PATH}', got '{path}'."
                )
            return self.google_callback_url.rstrip("/")

        host = self.api_host if self.api_host != "0.0.0.0" else "localhost"
        return f"http://{host}:{self.api_port}{OAUTH_CALLBACK_PATH}"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
