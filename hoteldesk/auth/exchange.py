"""
Exchange codes - single-use stand-ins for a verified identity.

A redirect URL cannot safely carry a bearer token, so login and the
OAuth callback hand the browser a short random code instead. The client
trades it once, within the TTL, for an access token.

Codes live in process memory only. Each public method runs its
prune -> lookup -> mutate sequence without awaiting, so it is atomic on
the event loop; running several API processes needs a shared store.
"""

from __future__ import annotations

import logging
import secrets
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta

from hoteldesk.core.models import AuthIdentity
from hoteldesk.core.utils import utc_now

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 60
CODE_BYTES = 32  # 256 bits of entropy


@dataclass
class PendingExchange:
    identity: AuthIdentity
    expires_at: datetime


class ExchangeCodeBroker:
    """In-memory, single-use code store. Owned by the application."""

    def __init__(
        self,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.ttl = timedelta(seconds=ttl_seconds)
        self._clock = clock
        self._pending: dict[str, PendingExchange] = {}

    def issue(self, identity: AuthIdentity) -> str:
        """Store the identity under a fresh code and return the code."""
        now = self._clock()
        self._prune(now)

        code = secrets.token_urlsafe(CODE_BYTES)
        self._pending[code] = PendingExchange(
            identity=identity.model_copy(),
            expires_at=now + self.ttl,
        )
        return code

    def redeem(self, code: str | None) -> AuthIdentity | None:
        """
        Take the identity held under ``code``.

        The entry is removed on first lookup whatever the caller does next.
        Returns None for unknown, already used, or expired codes.
        """
        code = (code or "").strip()
        self._prune(self._clock())
        if not code:
            return None

        pending = self._pending.pop(code, None)
        if pending is None:
            logger.debug("Exchange code not found or expired")
            return None
        return pending.identity

    def __len__(self) -> int:
        return len(self._pending)

    def _prune(self, now: datetime) -> None:
        expired = [code for code, entry in self._pending.items() if entry.expires_at <= now]
        for code in expired:
            del self._pending[code]
