"""
FastAPI application for HotelDesk identity and access.

The lifespan is the composition root: every auth component is built
once here and shared through ``app.state``.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from hoteldesk.api.admin import router as admin_router
from hoteldesk.auth.exchange import ExchangeCodeBroker
from hoteldesk.auth.reset import PasswordResetFlow
from hoteldesk.auth.routes import router as auth_router
from hoteldesk.auth.service import AuthService
from hoteldesk.auth.session import SessionResolver
from hoteldesk.auth.tokens import TokenIssuer
from hoteldesk.config import Settings, get_settings
from hoteldesk.integrations.email import EmailService
from hoteldesk.integrations.oauth import GoogleOAuth
from hoteldesk.integrations.sentry import init_sentry
from hoteldesk.storage.base import UserDirectory
from hoteldesk.storage.memory import InMemoryUserDirectory

logger = logging.getLogger(__name__)


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def build_auth_service(
    settings: Settings,
    directory: UserDirectory,
    email: EmailService | None = None,
) -> AuthService:
    """Wire the auth components from settings."""
    issuer = TokenIssuer.from_settings(settings)
    reset_flow = PasswordResetFlow(
        directory=directory,
        base_url=settings.base_url,
        expose_token=settings.reset_token_exposed,
        ttl_minutes=settings.password_reset_ttl_minutes,
        bcrypt_rounds=settings.bcrypt_rounds,
        deliver=email.send_password_reset if email else None,
    )
    return AuthService(
        directory=directory,
        issuer=issuer,
        broker=ExchangeCodeBroker(ttl_seconds=settings.exchange_code_ttl_seconds),
        reset_flow=reset_flow,
        resolver=SessionResolver(issuer, cookie_name=settings.auth_cookie_name),
        bcrypt_rounds=settings.bcrypt_rounds,
    )


def create_app(
    settings: Settings | None = None,
    directory: UserDirectory | None = None,
    google_oauth: GoogleOAuth | None = None,
) -> FastAPI:
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging(settings)
        init_sentry(settings)

        app.state.settings = settings
        app.state.directory = directory or InMemoryUserDirectory()
        app.state.auth_service = build_auth_service(
            settings,
            app.state.directory,
            email=EmailService(settings),
        )
        app.state.google_oauth = google_oauth or GoogleOAuth(settings)

        if settings.google_oauth_enabled:
            # Fails startup on a misconfigured GOOGLE_CALLBACK_URL
            logger.info("Google OAuth callback: %s", settings.resolved_google_callback_url)

        logger.info("HotelDesk API starting in %s mode", settings.environment)
        yield
        logger.info("HotelDesk API shutting down")

    app = FastAPI(
        title="HotelDesk API",
        description="Identity and access for the HotelDesk ticket system",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(auth_router, prefix="/api")
    app.include_router(admin_router, prefix="/api")

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    return app
