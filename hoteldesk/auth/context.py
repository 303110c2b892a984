"""
Auth context - the "who can do what" for each request.

This is the lightweight object handed to route handlers by the guards
in policies.py.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from hoteldesk.auth.capabilities import Action, Resource, has_permission
from hoteldesk.core.models import AuthIdentity, Role, User

Permission = str | tuple[Resource | str, Action | str]


def parse_permission(permission: Permission) -> tuple[str, str]:
    """
    Accept "tickets.read" or ("tickets", "read").

    Raises:
        ValueError: malformed permission string
    """
    if isinstance(permission, tuple):
        resource, action = permission
        return _value(resource), _value(action)
    resource, sep, action = permission.partition(".")
    if not sep or not resource or not action:
        raise ValueError(f"Permission must look like 'resource.action': {permission!r}")
    return resource, action


@dataclass
class AuthContext:
    """
    Authorization context for a request.

    Usage in routes:
        async def my_route(ctx: AuthContext = Depends(require("tickets.read"))):
            if ctx.can("tickets.write"):
                ...
    """

    user: User
    identity: AuthIdentity
    # Stored roles plus the built-in grants for their names
    roles: list[Role] = field(default_factory=list)

    @property
    def user_id(self) -> str:
        return self.user.id

    def can(self, permission: Permission) -> bool:
        resource, action = parse_permission(permission)
        return has_permission(self.roles, resource, action)

    def can_any(self, *permissions: Permission) -> bool:
        return any(self.can(p) for p in permissions)

    def can_all(self, *permissions: Permission) -> bool:
        return all(self.can(p) for p in permissions)


def _value(part: Resource | Action | str) -> str:
    return part.value if isinstance(part, (Resource, Action)) else str(part)
