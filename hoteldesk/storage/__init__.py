"""
Identity storage.

- UserDirectory → users, roles, password reset records
- InMemoryUserDirectory → development / tests (swap for a database-backed
  directory in production)
"""

from hoteldesk.storage.base import (
    DirectoryError,
    NotFoundError,
    ProviderConflictError,
    SystemRoleError,
    UserDirectory,
)
from hoteldesk.storage.memory import DEFAULT_HOTEL_ID, InMemoryUserDirectory

__all__ = [
    "DirectoryError",
    "NotFoundError",
    "ProviderConflictError",
    "SystemRoleError",
    "UserDirectory",
    "InMemoryUserDirectory",
    "DEFAULT_HOTEL_ID",
]
