"""
AuthService - local and federated sign-in orchestration.

Every interactive sign-in ends with the same step: the client holds a
short-lived exchange code and trades it for an access token.

    login / OAuth callback -> validate -> provider conflict check
        -> exchange code -> exchange() -> access token

Signup is a direct API call and returns an access token immediately.
All operations return an AuthResult; nothing here raises for an
expected failure.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from functools import cached_property

from hoteldesk.auth.capabilities import fallback_roles, flatten_permissions, pick_primary_role
from hoteldesk.auth.errors import AuthErrorKind, AuthResult
from hoteldesk.auth.exchange import ExchangeCodeBroker
from hoteldesk.auth.passwords import DEFAULT_ROUNDS, hash_password, verify_password
from hoteldesk.auth.reset import (
    MIN_PASSWORD_LENGTH,
    DeliveryScheduler,
    PasswordResetFlow,
    ResetConsumedResponse,
    ResetRequestResponse,
)
from hoteldesk.auth.session import SessionResolver
from hoteldesk.auth.tokens import TokenIssuer
from hoteldesk.core.models import APIModel, AuthIdentity, AuthProvider, Role, User, UserResponse
from hoteldesk.core.utils import normalize_email
from hoteldesk.storage.base import ProviderConflictError, UserDirectory

logger = logging.getLogger(__name__)


INVALID_CREDENTIALS_MESSAGE = "Invalid email or password."
GOOGLE_ACCOUNT_LOGIN_MESSAGE = "This account uses Google sign-in. Please continue with Google."
GOOGLE_ACCOUNT_SIGNUP_MESSAGE = (
    "This email is registered with Google. Please sign in with Google instead."
)
EMAIL_TAKEN_MESSAGE = "An account with this email already exists."
LOCAL_ACCOUNT_OAUTH_MESSAGE = (
    "This email is registered with email/password. Please sign in with your password."
)
INACTIVE_ACCOUNT_MESSAGE = "User account is inactive."
INVALID_CODE_MESSAGE = "Invalid or expired exchange code."
AUTH_REQUIRED_MESSAGE = "Authentication required."

DISPLAY_NAME_MIN = 2
DISPLAY_NAME_MAX = 80


# =============================================================================
# Response models
# =============================================================================


class AuthSession(APIModel):
    """Access token plus the user it was minted for."""
    access_token: str
    token_type: str = "bearer"
    user: UserResponse


class ExchangeCodeResponse(APIModel):
    code: str


# =============================================================================
# Service
# =============================================================================


class AuthService:
    """Composes token issuing, code exchange, password reset, and the directory."""

    def __init__(
        self,
        directory: UserDirectory,
        issuer: TokenIssuer,
        broker: ExchangeCodeBroker,
        reset_flow: PasswordResetFlow,
        resolver: SessionResolver | None = None,
        bcrypt_rounds: int = DEFAULT_ROUNDS,
    ):
        self.directory = directory
        self.issuer = issuer
        self.broker = broker
        self.reset_flow = reset_flow
        self.resolver = resolver or SessionResolver(issuer)
        self.bcrypt_rounds = bcrypt_rounds

    @cached_property
    def _dummy_hash(self) -> str:
        # Compared against when the account is missing so both paths pay for bcrypt
        return hash_password("not-a-real-password", rounds=self.bcrypt_rounds)

    # =========================================================================
    # Local accounts
    # =========================================================================

    async def signup(
        self,
        email: str,
        password: str,
        display_name: str | None = None,
    ) -> AuthResult[AuthSession]:
        email = normalize_email(email)
        if "@" not in email:
            return AuthResult.failure(AuthErrorKind.VALIDATION_ERROR, "A valid email is required.")
        if len(password or "") < MIN_PASSWORD_LENGTH:
            return AuthResult.failure(
                AuthErrorKind.VALIDATION_ERROR,
                f"Password must be at least {MIN_PASSWORD_LENGTH} characters.",
            )

        existing = await self.directory.find_by_email(email)
        if existing:
            if existing.auth_provider == AuthProvider.GOOGLE:
                return AuthResult.failure(AuthErrorKind.ACCOUNT_CONFLICT, GOOGLE_ACCOUNT_SIGNUP_MESSAGE)
            return AuthResult.failure(AuthErrorKind.ACCOUNT_CONFLICT, EMAIL_TAKEN_MESSAGE)

        try:
            user = await self.directory.create_local_user(
                email=email,
                password_hash=hash_password(password, rounds=self.bcrypt_rounds),
                display_name=display_name,
            )
        except ValueError:
            return AuthResult.failure(AuthErrorKind.ACCOUNT_CONFLICT, EMAIL_TAKEN_MESSAGE)

        logger.info("Local account created: %s", user.id)
        return AuthResult.success(await self._session_for(user))

    async def login(self, email: str, password: str) -> AuthResult[ExchangeCodeResponse]:
        """
        Check a password and hand back an exchange code.

        Unknown email and wrong password share one message.
        """
        user = await self.directory.find_by_email(normalize_email(email))
        if user is None:
            verify_password(password or "", self._dummy_hash)
            logger.info("Login failed for unknown email")
            return AuthResult.failure(AuthErrorKind.INVALID_CREDENTIALS, INVALID_CREDENTIALS_MESSAGE)

        if user.auth_provider == AuthProvider.GOOGLE and not user.password_hash:
            return AuthResult.failure(AuthErrorKind.ACCOUNT_CONFLICT, GOOGLE_ACCOUNT_LOGIN_MESSAGE)

        if not verify_password(password or "", user.password_hash):
            logger.info("Login failed for user %s", user.id)
            return AuthResult.failure(AuthErrorKind.INVALID_CREDENTIALS, INVALID_CREDENTIALS_MESSAGE)

        if not user.is_active:
            return AuthResult.failure(AuthErrorKind.INACTIVE_ACCOUNT, INACTIVE_ACCOUNT_MESSAGE)

        code = self.broker.issue(user.to_identity())
        return AuthResult.success(ExchangeCodeResponse(code=code))

    # =========================================================================
    # Federated accounts
    # =========================================================================

    async def ensure_provider_not_conflicting(self, email: str | None) -> AuthResult[None]:
        """A Google sign-in may not take over an email owned by a local account."""
        existing = await self.directory.find_by_email(normalize_email(email))
        if existing and existing.auth_provider == AuthProvider.LOCAL:
            logger.info("Google sign-in blocked by local account %s", existing.id)
            return AuthResult.failure(AuthErrorKind.ACCOUNT_CONFLICT, LOCAL_ACCOUNT_OAUTH_MESSAGE)
        return AuthResult.success(None)

    async def handle_oauth_callback(self, identity: AuthIdentity) -> AuthResult[ExchangeCodeResponse]:
        if not identity.email:
            return AuthResult.failure(
                AuthErrorKind.VALIDATION_ERROR, "The Google account did not share an email address."
            )

        check = await self.ensure_provider_not_conflicting(identity.email)
        if not check.ok:
            return AuthResult(error=check.error)

        code = self.broker.issue(identity)
        return AuthResult.success(ExchangeCodeResponse(code=code))

    # =========================================================================
    # Exchange
    # =========================================================================

    async def exchange(self, code: str) -> AuthResult[AuthSession]:
        """Trade a single-use code for an access token and the user view."""
        identity = self.broker.redeem(code)
        if identity is None:
            return AuthResult.failure(AuthErrorKind.INVALID_OR_EXPIRED_TOKEN, INVALID_CODE_MESSAGE)

        try:
            user = await self.directory.ensure_user_for_auth(identity)
        except ProviderConflictError as e:
            return AuthResult.failure(AuthErrorKind.ACCOUNT_CONFLICT, str(e))

        if user is None:
            return AuthResult.failure(AuthErrorKind.INVALID_OR_EXPIRED_TOKEN, INVALID_CODE_MESSAGE)
        if not user.is_active:
            return AuthResult.failure(AuthErrorKind.INACTIVE_ACCOUNT, INACTIVE_ACCOUNT_MESSAGE)

        return AuthResult.success(await self._session_for(user))

    # =========================================================================
    # Password reset
    # =========================================================================

    async def request_reset(
        self, email: str, schedule: DeliveryScheduler | None = None
    ) -> ResetRequestResponse:
        return await self.reset_flow.request_reset(email, schedule=schedule)

    async def consume_reset(self, token: str, password: str) -> AuthResult[ResetConsumedResponse]:
        return await self.reset_flow.consume_reset(token, password)

    # =========================================================================
    # Current user
    # =========================================================================

    def resolve_identity(self, headers: Mapping[str, str]) -> AuthIdentity | None:
        return self.resolver.resolve_from_headers(headers)

    async def resolve_user(self, identity: AuthIdentity | None) -> AuthResult[User]:
        """
        Load the durable, active user behind a verified identity.

        Read-only: accounts are created and linked at exchange time. Access
        tokens carry the user id; the OAuth session cookie carries the
        Google subject.
        """
        if identity is None:
            return AuthResult.failure(AuthErrorKind.INVALID_CREDENTIALS, AUTH_REQUIRED_MESSAGE)
        user = await self.directory.find_by_id(identity.id)
        if user is None and identity.provider == AuthProvider.GOOGLE:
            user = await self.directory.find_by_google_id(identity.id)
        if user is None:
            return AuthResult.failure(AuthErrorKind.INVALID_CREDENTIALS, AUTH_REQUIRED_MESSAGE)
        if not user.is_active:
            return AuthResult.failure(AuthErrorKind.INACTIVE_ACCOUNT, INACTIVE_ACCOUNT_MESSAGE)
        return AuthResult.success(user)

    async def effective_roles(self, user: User) -> tuple[list[Role], list[Role]]:
        """
        (assigned roles, roles used for decisions).

        Decisions also include the built-in grants for the assigned role
        names and the legacy label.
        """
        assigned = await self.directory.get_roles_for_user(user.id)
        names = [r.name for r in assigned] + [user.role]
        return assigned, assigned + fallback_roles(names)

    async def build_user_view(self, user: User) -> UserResponse:
        assigned, effective = await self.effective_roles(user)
        primary = pick_primary_role([r.name for r in assigned]) if assigned else user.role
        return UserResponse.from_user(user, assigned, flatten_permissions(effective), primary_role=primary)

    async def update_profile(self, user: User, display_name: str) -> AuthResult[UserResponse]:
        display_name = (display_name or "").strip()
        if not DISPLAY_NAME_MIN <= len(display_name) <= DISPLAY_NAME_MAX:
            return AuthResult.failure(
                AuthErrorKind.VALIDATION_ERROR,
                f"Display name must be {DISPLAY_NAME_MIN}-{DISPLAY_NAME_MAX} characters.",
            )
        updated = await self.directory.update_user_profile(user.id, display_name)
        if updated is None:
            return AuthResult.failure(AuthErrorKind.INVALID_CREDENTIALS, AUTH_REQUIRED_MESSAGE)
        return AuthResult.success(await self.build_user_view(updated))

    def create_session_token(self, identity: AuthIdentity) -> str:
        return self.issuer.create_session_token(identity)

    async def _session_for(self, user: User) -> AuthSession:
        return AuthSession(
            access_token=self.issuer.create_access_token(user.to_identity()),
            user=await self.build_user_view(user),
        )
