# =============================================================================
# Token Issuer
# =============================================================================
#
# Two independent token families:
#   - session tokens: carried in the httpOnly browser cookie after OAuth,
#     signed with JWT_SECRET, tokenType "oauth_session"
#   - access tokens: bearer credentials for API callers, signed with
#     JWT_ACCESS_SECRET, tokenType "access"
#
# A token minted for one channel is never accepted on the other: the
# secrets differ and each verifier checks the type tag.
#
# =============================================================================

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any

import jwt

from hoteldesk.config import ConfigurationError, Settings
from hoteldesk.core.models import AuthIdentity, AuthProvider
from hoteldesk.core.utils import utc_now

logger = logging.getLogger(__name__)


SESSION_TOKEN_TYPE = "oauth_session"
ACCESS_TOKEN_TYPE = "access"
LEGACY_ACCESS_TOKEN_TYPE = "local_access"  # accepted on verify, never issued

_ACCEPTED_ACCESS_TYPES = {None, ACCESS_TOKEN_TYPE, LEGACY_ACCESS_TOKEN_TYPE}


class TokenIssuer:
    """Signs and verifies session and access tokens. Stateless."""

    def __init__(
        self,
        session_secret: str,
        access_secret: str,
        algorithm: str = "HS256",
        session_ttl_seconds: int | None = None,
        access_ttl_seconds: int = 15 * 60,
    ):
        if not session_secret:
            raise ConfigurationError("JWT_SECRET is required for session tokens.")
        if not access_secret:
            raise ConfigurationError("JWT_ACCESS_SECRET is required for access tokens.")
        if session_secret == access_secret:
            logger.warning("JWT_SECRET and JWT_ACCESS_SECRET are identical; use independent secrets")

        self._session_secret = session_secret
        self._access_secret = access_secret
        self.algorithm = algorithm
        self.session_ttl_seconds = session_ttl_seconds or None
        self.access_ttl_seconds = access_ttl_seconds

    @classmethod
    def from_settings(cls, settings: Settings) -> TokenIssuer:
        return cls(
            session_secret=settings.jwt_secret,
            access_secret=settings.jwt_access_secret,
            algorithm=settings.jwt_algorithm,
            session_ttl_seconds=settings.jwt_expires_in,
            access_ttl_seconds=settings.jwt_access_expires_in,
        )

    # =========================================================================
    # Creation
    # =========================================================================

    def create_session_token(self, identity: AuthIdentity) -> str:
        """Sign a browser session token."""
        payload = self._payload(identity, SESSION_TOKEN_TYPE, self.session_ttl_seconds)
        return jwt.encode(payload, self._session_secret, algorithm=self.algorithm)

    def create_access_token(self, identity: AuthIdentity) -> str:
        """Sign a bearer access token."""
        payload = self._payload(identity, ACCESS_TOKEN_TYPE, self.access_ttl_seconds)
        return jwt.encode(payload, self._access_secret, algorithm=self.algorithm)

    @staticmethod
    def _payload(identity: AuthIdentity, token_type: str, ttl_seconds: int | None) -> dict[str, Any]:
        now = utc_now()
        payload: dict[str, Any] = {
            "sub": identity.id,
            "provider": identity.provider.value,
            "email": identity.email,
            "name": identity.name,
            "picture": identity.avatar_url,
            "tokenType": token_type,
            "iat": now,
        }
        if ttl_seconds:
            payload["exp"] = now + timedelta(seconds=ttl_seconds)
        return payload

    # =========================================================================
    # Verification (never raises)
    # =========================================================================

    def verify_session_token(self, token: str | None) -> AuthIdentity | None:
        payload = self._decode(token, self._session_secret)
        if payload is None:
            return None
        token_type = payload.get("tokenType")
        if token_type is not None and token_type != SESSION_TOKEN_TYPE:
            logger.debug("Rejected session token with tokenType=%s", token_type)
            return None
        return self._identity(payload, AuthProvider.GOOGLE)

    def verify_access_token(self, token: str | None) -> AuthIdentity | None:
        payload = self._decode(token, self._access_secret)
        if payload is None:
            return None
        token_type = payload.get("tokenType")
        if token_type not in _ACCEPTED_ACCESS_TYPES:
            logger.debug("Rejected access token with tokenType=%s", token_type)
            return None
        return self._identity(payload, AuthProvider.LOCAL)

    def _decode(self, token: str | None, secret: str) -> dict[str, Any] | None:
        if not token:
            return None
        try:
            payload = jwt.decode(
                token,
                secret,
                algorithms=[self.algorithm],
                options={"require": ["sub"]},
            )
        except jwt.ExpiredSignatureError:
            logger.debug("Token expired")
            return None
        except jwt.InvalidTokenError as e:
            logger.debug("Invalid token: %s", e)
            return None
        return payload if isinstance(payload, dict) else None

    @staticmethod
    def _identity(payload: dict[str, Any], default_provider: AuthProvider) -> AuthIdentity | None:
        try:
            provider = AuthProvider(payload.get("provider") or default_provider.value)
        except ValueError:
            return None
        return AuthIdentity(
            id=str(payload["sub"]),
            provider=provider,
            email=payload.get("email"),
            name=payload.get("name"),
            avatar_url=payload.get("picture"),
        )
