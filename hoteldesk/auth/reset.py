"""
Password reset tokens.

Only SHA-256 digests of reset tokens are stored. The raw token leaves
the process once: in the HTTP response when the deployment allows it
(development), otherwise through the delivery hook (e-mail).

At most one token per user is live: issuing a new one and consuming one
both invalidate every other outstanding token for that user.
"""

from __future__ import annotations

import hashlib
import logging
import secrets
from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta
from urllib.parse import quote

from hoteldesk.auth.errors import AuthErrorKind, AuthResult
from hoteldesk.auth.passwords import DEFAULT_ROUNDS, hash_password
from hoteldesk.core.models import APIModel, AuthProvider, User
from hoteldesk.core.utils import normalize_email, utc_now
from hoteldesk.storage.base import UserDirectory

logger = logging.getLogger(__name__)

DEFAULT_TTL_MINUTES = 30
TOKEN_BYTES = 32
MIN_PASSWORD_LENGTH = 8

INVALID_RESET_TOKEN_MESSAGE = "Invalid or expired reset token."

ResetDelivery = Callable[[User, str], Awaitable[object]]
# Hands (delivery, user, url) to something that runs it after the response
DeliveryScheduler = Callable[..., object]


class ResetRequestResponse(APIModel):
    """
    Identical shape whether or not the account exists.

    ``reset_token`` and ``dev_reset_url`` are only filled when raw tokens
    may be exposed and an eligible account was found.
    """

    success: bool = True
    reset_token: str | None = None
    dev_reset_url: str | None = None


class ResetConsumedResponse(APIModel):
    success: bool = True


def hash_reset_token(raw_token: str) -> str:
    return hashlib.sha256(raw_token.encode("utf-8")).hexdigest()


def build_reset_url(base_url: str, raw_token: str) -> str:
    return f"{base_url.rstrip('/')}/reset-password?token={quote(raw_token)}"


class PasswordResetFlow:
    def __init__(
        self,
        directory: UserDirectory,
        base_url: str,
        expose_token: bool = False,
        ttl_minutes: int = DEFAULT_TTL_MINUTES,
        bcrypt_rounds: int = DEFAULT_ROUNDS,
        deliver: ResetDelivery | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.directory = directory
        self.base_url = base_url
        self.expose_token = expose_token
        self.ttl = timedelta(minutes=ttl_minutes)
        self.bcrypt_rounds = bcrypt_rounds
        self.deliver = deliver
        self._clock = clock

    async def request_reset(
        self, email: str, schedule: DeliveryScheduler | None = None
    ) -> ResetRequestResponse:
        """
        Issue a reset token for a local account.

        Unknown or federated accounts get the same response and no token.
        With ``schedule`` (e.g. ``BackgroundTasks.add_task``) the e-mail is
        sent after the response, so the reply takes as long for an unknown
        address as for a real one.
        """
        user = await self.directory.find_by_email(normalize_email(email))
        if user is None or user.auth_provider != AuthProvider.LOCAL:
            return ResetRequestResponse()

        await self.directory.consume_all_password_reset_tokens_for_user(user.id)

        raw_token = secrets.token_urlsafe(TOKEN_BYTES)
        await self.directory.create_password_reset_token(
            user_id=user.id,
            token_hash=hash_reset_token(raw_token),
            expires_at=self._clock() + self.ttl,
        )
        logger.info("Password reset issued for user %s", user.id)

        if self.expose_token:
            return ResetRequestResponse(
                reset_token=raw_token,
                dev_reset_url=build_reset_url(self.base_url, raw_token),
            )

        if self.deliver is not None:
            reset_url = build_reset_url(self.base_url, raw_token)
            if schedule is not None:
                schedule(self.deliver, user, reset_url)
            else:
                await self.deliver(user, reset_url)
        return ResetRequestResponse()

    async def consume_reset(self, raw_token: str, new_password: str) -> AuthResult[ResetConsumedResponse]:
        """Set a new password with a reset token, then retire every token for the user."""
        if len(new_password or "") < MIN_PASSWORD_LENGTH:
            return AuthResult.failure(
                AuthErrorKind.VALIDATION_ERROR,
                f"Password must be at least {MIN_PASSWORD_LENGTH} characters.",
            )

        raw_token = (raw_token or "").strip()
        if not raw_token:
            return AuthResult.failure(AuthErrorKind.INVALID_OR_EXPIRED_TOKEN, INVALID_RESET_TOKEN_MESSAGE)

        record = await self.directory.find_valid_password_reset_token_by_hash(hash_reset_token(raw_token))
        if record is None:
            return AuthResult.failure(AuthErrorKind.INVALID_OR_EXPIRED_TOKEN, INVALID_RESET_TOKEN_MESSAGE)

        # Claim the record before doing any work so a concurrent request
        # with the same token loses.
        claimed = await self.directory.consume_password_reset_token(record.id)
        if claimed is None:
            return AuthResult.failure(AuthErrorKind.INVALID_OR_EXPIRED_TOKEN, INVALID_RESET_TOKEN_MESSAGE)

        user = await self.directory.find_by_id(record.user_id)
        if user is None:
            return AuthResult.failure(AuthErrorKind.INVALID_OR_EXPIRED_TOKEN, INVALID_RESET_TOKEN_MESSAGE)

        await self.directory.update_password_hash(
            user.id, hash_password(new_password, rounds=self.bcrypt_rounds)
        )
        await self.directory.consume_all_password_reset_tokens_for_user(user.id)
        logger.info("Password reset completed for user %s", user.id)

        return AuthResult.success(ResetConsumedResponse())
