"""
Core data models for identity and access.

Users, roles, identity snapshots, and password reset records. The role
set is the source of truth for authorization; ``User.role`` is a legacy
single label kept only for clients that still read it.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from hoteldesk.core.utils import generate_id, utc_now


# =============================================================================
# Enums
# =============================================================================


class AuthProvider(str, Enum):
    """How a user proves who they are."""

    LOCAL = "local"    # email + password
    GOOGLE = "google"  # federated OAuth


# =============================================================================
# Identity
# =============================================================================


class AuthIdentity(BaseModel):
    """
    Identity snapshot carried by tokens and exchange codes.

    For local users ``id`` is the user id. For Google sign-ins before the
    user is provisioned it is the Google subject id.
    """

    id: str
    provider: AuthProvider
    email: str | None = None
    name: str | None = None
    avatar_url: str | None = None


class Role(BaseModel):
    """A named grant of (resource, action) permissions."""

    id: str = Field(default_factory=lambda: generate_id("role"))
    name: str
    description: str | None = None
    is_system: bool = False
    # resource -> actions; "*" grants every action on the resource
    permissions: dict[str, set[str]] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class User(BaseModel):
    """A person who can sign in."""

    id: str = Field(default_factory=lambda: generate_id("user"))
    email: str
    display_name: str
    password_hash: str | None = None
    auth_provider: AuthProvider = AuthProvider.LOCAL
    google_id: str | None = None
    avatar_url: str | None = None
    is_active: bool = True
    hotel_id: str | None = None
    role: str = "agent"
    role_ids: list[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    def to_identity(self) -> AuthIdentity:
        return AuthIdentity(
            id=self.id,
            provider=self.auth_provider,
            email=self.email,
            name=self.display_name,
            avatar_url=self.avatar_url,
        )


class PasswordResetRecord(BaseModel):
    """Stored form of a reset token. Only the SHA-256 of the raw token is kept."""

    id: str = Field(default_factory=lambda: generate_id("prt"))
    user_id: str
    token_hash: str
    expires_at: datetime
    consumed_at: datetime | None = None
    created_at: datetime = Field(default_factory=utc_now)

    @property
    def is_consumed(self) -> bool:
        return self.consumed_at is not None


# =============================================================================
# API views
# =============================================================================


class APIModel(BaseModel):
    """camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RoleSummary(APIModel):
    id: str
    name: str


class UserResponse(APIModel):
    """User data returned to clients (no secrets)."""

    id: str
    email: str
    display_name: str
    provider: AuthProvider
    avatar_url: str | None = None
    role: str
    roles: list[RoleSummary] = Field(default_factory=list)
    permissions: list[str] = Field(default_factory=list)
    is_active: bool
    hotel_id: str | None = None

    @classmethod
    def from_user(
        cls,
        user: User,
        roles: list[Role],
        permissions: list[str] | None = None,
        primary_role: str | None = None,
    ) -> UserResponse:
        return cls(
            id=user.id,
            email=user.email,
            display_name=user.display_name,
            provider=user.auth_provider,
            avatar_url=user.avatar_url,
            role=primary_role or user.role,
            roles=[RoleSummary(id=r.id, name=r.name) for r in roles],
            permissions=permissions or [],
            is_active=user.is_active,
            hotel_id=user.hotel_id,
        )
