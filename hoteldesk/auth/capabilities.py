"""
Permissions, roles, and the access decision.

This defines WHAT users can do. The request guards in policies.py
decide WHEN to ask.

A permission is a (resource, action) pair. A role grants a mapping of
resource -> actions, where "*" grants every action on that resource.
Names are checked against the catalog when a role is edited, never
while evaluating a request.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from enum import Enum
from typing import Any

from hoteldesk.core.models import Role


WILDCARD = "*"
DEFAULT_ROLE = "agent"


class Resource(str, Enum):
    """Things a permission can be granted on."""

    USERS = "users"
    ROLES = "roles"
    HOTELS = "hotels"
    TICKETS = "tickets"
    AUDIT = "audit"
    SETTINGS = "settings"


class Action(str, Enum):
    READ = "read"
    WRITE = "write"


# =============================================================================
# Catalog
# =============================================================================


# Which actions exist for each resource
PERMISSION_CATALOG: dict[Resource, set[Action]] = {
    Resource.USERS: {Action.READ, Action.WRITE},
    Resource.ROLES: {Action.READ, Action.WRITE},
    Resource.HOTELS: {Action.READ, Action.WRITE},
    Resource.TICKETS: {Action.READ, Action.WRITE},
    Resource.AUDIT: {Action.READ},
    Resource.SETTINGS: {Action.WRITE},
}

_ALL = {resource.value: {WILDCARD} for resource in Resource}

# Built-in grants for well-known role names, merged with whatever the
# stored role carries.
FALLBACK_ROLE_PERMISSIONS: dict[str, dict[str, set[str]]] = {
    "super_admin": _ALL,
    "admin": _ALL,
    "manager": {
        "users": {"read"},
        "hotels": {"read"},
        "tickets": {"read"},
        "audit": {"read"},
    },
    "agent": {"tickets": {"read", "write"}},
    "user": {"tickets": {"read", "write"}},
}

# Seeded on an empty directory. System roles cannot be deleted.
DEFAULT_ROLES: list[dict[str, Any]] = [
    {
        "name": "admin",
        "description": "Administrator",
        "permissions": _ALL,
    },
    {
        "name": "manager",
        "description": "Manager",
        "permissions": FALLBACK_ROLE_PERMISSIONS["manager"],
    },
    {
        "name": "agent",
        "description": "Agent",
        "permissions": FALLBACK_ROLE_PERMISSIONS["agent"],
    },
]


def catalog_as_dict() -> dict[str, list[str]]:
    """The catalog in a JSON-friendly shape, for admin UIs."""
    return {
        resource.value: sorted(action.value for action in actions)
        for resource, actions in PERMISSION_CATALOG.items()
    }


def validate_permissions(permissions: Mapping[str, Iterable[str]]) -> dict[str, set[str]]:
    """
    Normalize and validate a permission mapping against the catalog.

    Raises:
        ValueError: unknown resource or action
    """
    validated: dict[str, set[str]] = {}
    for raw_resource, raw_actions in permissions.items():
        resource_name = _normalize(raw_resource)
        try:
            resource = Resource(resource_name)
        except ValueError:
            raise ValueError(f"Unknown resource: {raw_resource!r}") from None

        actions: set[str] = set()
        for raw_action in raw_actions:
            action = _normalize(raw_action)
            if action == WILDCARD:
                actions.add(WILDCARD)
                continue
            if action not in {a.value for a in PERMISSION_CATALOG[resource]}:
                raise ValueError(f"Unknown action {raw_action!r} for resource {resource.value!r}")
            actions.add(action)

        if actions:
            validated[resource.value] = actions
    return validated


# =============================================================================
# Decision
# =============================================================================


def has_permission(
    roles: Iterable[Role | Mapping[str, Any]],
    resource: Resource | str,
    action: Action | str,
) -> bool:
    """
    Deny-by-default access decision.

    True iff some role's grant for ``resource`` contains ``action`` or
    the wildcard.
    """
    resource_name = _normalize(resource)
    action_name = _normalize(action)

    for role in roles:
        granted = _permissions_of(role).get(resource_name)
        if not granted:
            continue
        normalized = {_normalize(a) for a in granted}
        if action_name in normalized or WILDCARD in normalized:
            return True
    return False


def pick_primary_role(role_names: Iterable[str]) -> str:
    """
    Project a role set onto the legacy single-role label.

    super_admin > admin > manager > first assigned > default.
    """
    names = [n for n in role_names if n]
    for preferred in ("super_admin", "admin", "manager"):
        if preferred in names:
            return preferred
    return names[0] if names else DEFAULT_ROLE


def fallback_roles(role_names: Iterable[str]) -> list[Role]:
    """Synthesize roles carrying the built-in grants for known names."""
    roles = []
    for name in {_normalize(n) for n in role_names if n}:
        grants = FALLBACK_ROLE_PERMISSIONS.get(name)
        if grants:
            roles.append(Role(id=f"builtin:{name}", name=name, permissions=grants, is_system=True))
    return roles


def flatten_permissions(roles: Iterable[Role]) -> list[str]:
    """Dotted "resource.action" strings, for clients that display them."""
    flat: set[str] = set()
    for role in roles:
        for resource, actions in role.permissions.items():
            for action in actions:
                flat.add(f"{resource}.{action}")
    return sorted(flat)


def _normalize(value: Enum | str) -> str:
    if isinstance(value, Enum):
        value = value.value
    return str(value).strip().lower()


def _permissions_of(role: Role | Mapping[str, Any]) -> Mapping[str, Iterable[str]]:
    if isinstance(role, Mapping):
        return role.get("permissions") or {}
    return role.permissions or {}
