# =============================================================================
# OAuth Integration (Google)
# =============================================================================
#
# Setup:
#   1. Go to https://console.cloud.google.com/apis/credentials
#   2. Create OAuth 2.0 Client ID (Web application)
#   3. Add authorized redirect URI: https://api.yourdomain.com/api/auth/google/callback
#   4. Set env vars:
#      - GOOGLE_OAUTH_CLIENT_ID=...
#      - GOOGLE_OAUTH_CLIENT_SECRET=...
#      - GOOGLE_CALLBACK_URL=... (optional, must end in /api/auth/google/callback)
#
# =============================================================================

from __future__ import annotations

import logging
import secrets
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any
from urllib.parse import urlencode

import httpx

from hoteldesk.config import Settings
from hoteldesk.core.models import AuthIdentity, AuthProvider
from hoteldesk.core.utils import utc_now

logger = logging.getLogger(__name__)

STATE_TTL_SECONDS = 10 * 60


class OAuthError(Exception):
    """OAuth flow error."""
    pass


@dataclass
class PendingState:
    next_path: str | None
    expires_at: datetime


# =============================================================================
# Google OAuth
# =============================================================================


class GoogleOAuth:
    """Google OAuth 2.0 authorization-code flow."""

    AUTHORIZE_URL = "https://accounts.google.com/o/oauth2/v2/auth"
    TOKEN_URL = "https://oauth2.googleapis.com/token"
    USERINFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"

    def __init__(
        self,
        settings: Settings,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.settings = settings
        self._transport = transport
        self._clock = clock
        # state -> where to send the browser afterwards (single process only)
        self._pending_states: dict[str, PendingState] = {}

    @property
    def is_configured(self) -> bool:
        return self.settings.google_oauth_enabled

    @property
    def redirect_uri(self) -> str:
        return self.settings.resolved_google_callback_url

    # =========================================================================
    # CSRF state
    # =========================================================================

    def create_state(self, next_path: str | None = None) -> str:
        now = self._clock()
        self._prune_states(now)
        state = secrets.token_urlsafe(24)
        self._pending_states[state] = PendingState(
            next_path=next_path,
            expires_at=now + timedelta(seconds=STATE_TTL_SECONDS),
        )
        return state

    def validate_state(self, state: str | None) -> PendingState | None:
        """Consume a state token. None if unknown, reused, or expired."""
        self._prune_states(self._clock())
        if not state:
            return None
        return self._pending_states.pop(state, None)

    def _prune_states(self, now: datetime) -> None:
        expired = [s for s, p in self._pending_states.items() if p.expires_at <= now]
        for state in expired:
            del self._pending_states[state]

    # =========================================================================
    # Flow
    # =========================================================================

    def get_authorize_url(self, state: str) -> str:
        """URL to redirect the browser to for Google sign-in."""
        if not self.is_configured:
            raise OAuthError("Google OAuth not configured")

        params = {
            "client_id": self.settings.google_oauth_client_id,
            "redirect_uri": self.redirect_uri,
            "response_type": "code",
            "scope": "openid email profile",
            "prompt": "select_account",
            "state": state,
        }
        return f"{self.AUTHORIZE_URL}?{urlencode(params)}"

    async def exchange_code(self, code: str) -> dict[str, Any]:
        """Exchange the authorization code for Google tokens."""
        if not self.is_configured:
            raise OAuthError("Google OAuth not configured")

        async with httpx.AsyncClient(transport=self._transport) as client:
            try:
                response = await client.post(
                    self.TOKEN_URL,
                    data={
                        "client_id": self.settings.google_oauth_client_id,
                        "client_secret": self.settings.google_oauth_client_secret,
                        "code": code,
                        "redirect_uri": self.redirect_uri,
                        "grant_type": "authorization_code",
                    },
                )
            except httpx.HTTPError as e:
                raise OAuthError(f"Token exchange failed: {e}") from e

        if response.status_code != 200:
            logger.error("Google token exchange failed: %s", response.status_code)
            raise OAuthError(f"Token exchange failed: {response.status_code}")
        return response.json()

    async def get_user_info(self, access_token: str) -> AuthIdentity:
        async with httpx.AsyncClient(transport=self._transport) as client:
            try:
                response = await client.get(
                    self.USERINFO_URL,
                    headers={"Authorization": f"Bearer {access_token}"},
                )
            except httpx.HTTPError as e:
                raise OAuthError(f"Failed to get user info: {e}") from e

        if response.status_code != 200:
            logger.error("Google userinfo failed: %s", response.status_code)
            raise OAuthError(f"Failed to get user info: {response.status_code}")

        data = response.json()
        if not data.get("id"):
            raise OAuthError("Google profile has no subject id")

        return AuthIdentity(
            id=str(data["id"]),
            provider=AuthProvider.GOOGLE,
            email=data.get("email"),
            name=data.get("name"),
            avatar_url=data.get("picture"),
        )

    async def authenticate(self, code: str) -> AuthIdentity:
        """Complete the flow: exchange the code, then read the profile."""
        tokens = await self.exchange_code(code)
        access_token = tokens.get("access_token")
        if not access_token:
            raise OAuthError("Google token response has no access_token")
        return await self.get_user_info(access_token)
