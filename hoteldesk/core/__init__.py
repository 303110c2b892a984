"""
Core module - identity data models and shared utilities.
"""

from hoteldesk.core.models import (
    APIModel,
    AuthIdentity,
    AuthProvider,
    PasswordResetRecord,
    Role,
    RoleSummary,
    User,
    UserResponse,
)

from hoteldesk.core.utils import (
    generate_id,
    normalize_email,
    utc_now,
)

__all__ = [
    # Models
    "APIModel",
    "AuthIdentity",
    "AuthProvider",
    "PasswordResetRecord",
    "Role",
    "RoleSummary",
    "User",
    "UserResponse",
    # Utils
    "generate_id",
    "normalize_email",
    "utc_now",
]
