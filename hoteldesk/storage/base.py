"""
Storage abstraction for identity data.

All user, role, and reset-token persistence goes through UserDirectory.
This allows swapping implementations (in-memory -> PostgreSQL) without
changing the auth services.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping
from datetime import datetime

from hoteldesk.core.models import AuthIdentity, PasswordResetRecord, Role, User


class DirectoryError(Exception):
    """Base class for directory failures."""
    pass


class ProviderConflictError(DirectoryError):
    """A federated sign-in hit an email owned by a local account."""
    pass


class NotFoundError(DirectoryError):
    pass


class SystemRoleError(DirectoryError):
    """System roles cannot be deleted."""
    pass


GOOGLE_SIGNIN_BLOCKED_MESSAGE = (
    "This email is registered with email/password. Please sign in with your password."
)


class UserDirectory(ABC):
    """
    Users, roles, and password reset records.

    Emails are compared case-insensitively and stored normalized.
    """

    # =========================================================================
    # Users
    # =========================================================================

    @abstractmethod
    async def find_by_email(self, email: str) -> User | None:
        pass

    @abstractmethod
    async def find_by_id(self, user_id: str) -> User | None:
        pass

    @abstractmethod
    async def find_by_google_id(self, google_id: str) -> User | None:
        pass

    @abstractmethod
    async def create_local_user(
        self,
        email: str,
        password_hash: str,
        display_name: str | None = None,
    ) -> User:
        """Create a local-provider user with the default role and hotel."""
        pass

    @abstractmethod
    async def ensure_user_for_auth(self, identity: AuthIdentity) -> User | None:
        """
        Resolve the durable user behind an identity snapshot.

        Local identities are looked up (by id, then email) and never
        created. Google identities are linked to or provisioned as a
        google-provider user.

        Raises:
            ProviderConflictError: Google identity whose email belongs to a
                local account
        """
        pass

    @abstractmethod
    async def update_password_hash(self, user_id: str, password_hash: str) -> User | None:
        """Set a new password; the account becomes local-provider."""
        pass

    @abstractmethod
    async def update_user_profile(self, user_id: str, display_name: str) -> User | None:
        pass

    @abstractmethod
    async def update_user_status(self, user_id: str, is_active: bool) -> User | None:
        pass

    # =========================================================================
    # Roles
    # =========================================================================

    @abstractmethod
    async def get_roles_for_user(self, user_id: str) -> list[Role]:
        pass

    @abstractmethod
    async def list_roles(self) -> list[Role]:
        pass

    @abstractmethod
    async def get_role(self, role_id: str) -> Role | None:
        pass

    @abstractmethod
    async def update_role(
        self,
        role_id: str,
        description: str | None = None,
        permissions: Mapping[str, set[str]] | None = None,
    ) -> Role:
        """Raises NotFoundError for unknown roles."""
        pass

    @abstractmethod
    async def delete_role(self, role_id: str) -> Role:
        """Raises NotFoundError or SystemRoleError."""
        pass

    @abstractmethod
    async def set_user_roles(self, user_id: str, role_ids: Iterable[str]) -> User:
        """
        Replace a user's role set and resync the legacy role label.

        Raises NotFoundError for an unknown user or role.
        """
        pass

    # =========================================================================
    # Password reset records
    # =========================================================================

    @abstractmethod
    async def create_password_reset_token(
        self,
        user_id: str,
        token_hash: str,
        expires_at: datetime,
    ) -> PasswordResetRecord:
        pass

    @abstractmethod
    async def find_valid_password_reset_token_by_hash(
        self, token_hash: str
    ) -> PasswordResetRecord | None:
        """Unconsumed and unexpired record with this hash, if any."""
        pass

    @abstractmethod
    async def consume_password_reset_token(self, token_id: str) -> PasswordResetRecord | None:
        """Mark one record consumed. None if it was already consumed."""
        pass

    @abstractmethod
    async def consume_all_password_reset_tokens_for_user(self, user_id: str) -> int:
        """Mark every outstanding record for the user consumed. Returns the count."""
        pass
