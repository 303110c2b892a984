"""
In-memory UserDirectory for development and tests.

Works without any external services. State is per-process and lost on
restart.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from datetime import datetime

from hoteldesk.auth.capabilities import DEFAULT_ROLE, DEFAULT_ROLES, pick_primary_role
from hoteldesk.core.models import AuthIdentity, AuthProvider, PasswordResetRecord, Role, User
from hoteldesk.core.utils import normalize_email, utc_now
from hoteldesk.storage.base import (
    GOOGLE_SIGNIN_BLOCKED_MESSAGE,
    NotFoundError,
    ProviderConflictError,
    SystemRoleError,
    UserDirectory,
)

DEFAULT_HOTEL_ID = "hotel_default"


def _fallback_display_name(name: str | None, email: str) -> str:
    return (name or "").strip() or email.split("@")[0] or "User"


class InMemoryUserDirectory(UserDirectory):
    """Dict-backed directory seeded with the default system roles."""

    def __init__(
        self,
        clock: Callable[[], datetime] = utc_now,
        default_hotel_id: str = DEFAULT_HOTEL_ID,
    ):
        self._clock = clock
        self.default_hotel_id = default_hotel_id

        self._users: dict[str, User] = {}
        self._users_by_email: dict[str, str] = {}  # email -> user_id
        self._roles: dict[str, Role] = {}
        self._reset_tokens: dict[str, PasswordResetRecord] = {}

        for seed in DEFAULT_ROLES:
            role = Role(
                name=seed["name"],
                description=seed["description"],
                permissions={k: set(v) for k, v in seed["permissions"].items()},
                is_system=True,
            )
            self._roles[role.id] = role

    # =========================================================================
    # Users
    # =========================================================================

    async def find_by_email(self, email: str) -> User | None:
        user_id = self._users_by_email.get(normalize_email(email))
        return self._users.get(user_id) if user_id else None

    async def find_by_id(self, user_id: str) -> User | None:
        return self._users.get(user_id)

    async def find_by_google_id(self, google_id: str) -> User | None:
        if not google_id:
            return None
        for user in self._users.values():
            if user.google_id == google_id:
                return user
        return None

    async def create_local_user(
        self,
        email: str,
        password_hash: str,
        display_name: str | None = None,
    ) -> User:
        email = normalize_email(email)
        if email in self._users_by_email:
            raise ValueError("Email already registered")

        user = User(
            email=email,
            display_name=_fallback_display_name(display_name, email),
            password_hash=password_hash,
            auth_provider=AuthProvider.LOCAL,
            hotel_id=self.default_hotel_id,
        )
        self._assign_default_role(user)
        self._save(user)
        return user

    async def ensure_user_for_auth(self, identity: AuthIdentity) -> User | None:
        if identity.provider == AuthProvider.LOCAL:
            by_id = self._users.get(identity.id)
            if by_id:
                return by_id
            if not identity.email:
                return None
            return await self.find_by_email(identity.email)

        if not identity.email:
            return None

        email = normalize_email(identity.email)
        existing_by_email = await self.find_by_email(email)
        if existing_by_email and existing_by_email.auth_provider == AuthProvider.LOCAL:
            raise ProviderConflictError(GOOGLE_SIGNIN_BLOCKED_MESSAGE)

        existing = await self.find_by_google_id(identity.id) or existing_by_email
        now = self._clock()

        if existing:
            existing.display_name = (
                (identity.name or "").strip()
                or existing.display_name
                or _fallback_display_name(None, email)
            )
            existing.avatar_url = identity.avatar_url or existing.avatar_url
            existing.auth_provider = AuthProvider.GOOGLE
            existing.google_id = identity.id
            existing.updated_at = now
            return existing

        user = User(
            email=email,
            display_name=_fallback_display_name(identity.name, email),
            password_hash=None,
            auth_provider=AuthProvider.GOOGLE,
            google_id=identity.id,
            avatar_url=identity.avatar_url,
            hotel_id=self.default_hotel_id,
        )
        self._assign_default_role(user)
        self._save(user)
        return user

    async def update_password_hash(self, user_id: str, password_hash: str) -> User | None:
        user = self._users.get(user_id)
        if not user:
            return None
        user.password_hash = password_hash
        user.auth_provider = AuthProvider.LOCAL
        user.google_id = None
        user.updated_at = self._clock()
        return user

    async def update_user_profile(self, user_id: str, display_name: str) -> User | None:
        user = self._users.get(user_id)
        if not user:
            return None
        user.display_name = display_name.strip()
        user.updated_at = self._clock()
        return user

    async def update_user_status(self, user_id: str, is_active: bool) -> User | None:
        user = self._users.get(user_id)
        if not user:
            return None
        user.is_active = is_active
        user.updated_at = self._clock()
        return user

    def _save(self, user: User) -> None:
        self._users[user.id] = user
        self._users_by_email[user.email] = user.id

    def _assign_default_role(self, user: User) -> None:
        default = self._role_by_name(DEFAULT_ROLE)
        user.role = DEFAULT_ROLE
        user.role_ids = [default.id] if default else []

    # =========================================================================
    # Roles
    # =========================================================================

    async def get_roles_for_user(self, user_id: str) -> list[Role]:
        user = self._users.get(user_id)
        if not user:
            return []
        return [self._roles[rid] for rid in user.role_ids if rid in self._roles]

    async def list_roles(self) -> list[Role]:
        return sorted(self._roles.values(), key=lambda r: r.name)

    async def get_role(self, role_id: str) -> Role | None:
        return self._roles.get(role_id)

    async def update_role(
        self,
        role_id: str,
        description: str | None = None,
        permissions: Mapping[str, set[str]] | None = None,
    ) -> Role:
        role = self._roles.get(role_id)
        if not role:
            raise NotFoundError(f"Role {role_id} not found")
        if description is not None:
            role.description = description.strip() or None
        if permissions is not None:
            role.permissions = {k: set(v) for k, v in permissions.items()}
        role.updated_at = self._clock()
        return role

    async def delete_role(self, role_id: str) -> Role:
        role = self._roles.get(role_id)
        if not role:
            raise NotFoundError(f"Role {role_id} not found")
        if role.is_system:
            raise SystemRoleError(f"Role '{role.name}' is a system role")

        del self._roles[role_id]
        for user in self._users.values():
            if role_id in user.role_ids:
                user.role_ids = [rid for rid in user.role_ids if rid != role_id]
                self._sync_legacy_role(user)
        return role

    async def set_user_roles(self, user_id: str, role_ids: Iterable[str]) -> User:
        user = self._users.get(user_id)
        if not user:
            raise NotFoundError(f"User {user_id} not found")

        resolved = list(dict.fromkeys(rid for rid in role_ids if rid))
        missing = [rid for rid in resolved if rid not in self._roles]
        if missing:
            raise NotFoundError("One or more roles were not found")

        user.role_ids = resolved
        self._sync_legacy_role(user)
        user.updated_at = self._clock()
        return user

    def add_role(self, role: Role) -> Role:
        """Register an extra role (seeding and tests)."""
        self._roles[role.id] = role
        return role

    def _role_by_name(self, name: str) -> Role | None:
        for role in self._roles.values():
            if role.name == name:
                return role
        return None

    def _sync_legacy_role(self, user: User) -> None:
        names = [self._roles[rid].name for rid in user.role_ids if rid in self._roles]
        user.role = pick_primary_role(names)

    # =========================================================================
    # Password reset records
    # =========================================================================

    async def create_password_reset_token(
        self,
        user_id: str,
        token_hash: str,
        expires_at: datetime,
    ) -> PasswordResetRecord:
        self._prune_reset_tokens()
        record = PasswordResetRecord(
            user_id=user_id,
            token_hash=token_hash,
            expires_at=expires_at,
            created_at=self._clock(),
        )
        self._reset_tokens[record.id] = record
        return record

    async def find_valid_password_reset_token_by_hash(
        self, token_hash: str
    ) -> PasswordResetRecord | None:
        self._prune_reset_tokens()
        for record in self._reset_tokens.values():
            if record.token_hash == token_hash:
                return record
        return None

    async def consume_password_reset_token(self, token_id: str) -> PasswordResetRecord | None:
        record = self._reset_tokens.get(token_id)
        if not record or record.is_consumed:
            return None
        record.consumed_at = self._clock()
        return record

    async def consume_all_password_reset_tokens_for_user(self, user_id: str) -> int:
        now = self._clock()
        count = 0
        for record in self._reset_tokens.values():
            if record.user_id == user_id and not record.is_consumed:
                record.consumed_at = now
                count += 1
        return count

    def _prune_reset_tokens(self) -> None:
        """Drop consumed and expired records."""
        now = self._clock()
        stale = [
            rid for rid, r in self._reset_tokens.items()
            if r.is_consumed or r.expires_at <= now
        ]
        for rid in stale:
            del self._reset_tokens[rid]
