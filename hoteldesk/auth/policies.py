"""
Policies - the clean interface for route authorization.

Just use: `ctx: AuthContext = Depends(require("roles.read"))`

- `require()` returns a FastAPI dependency that resolves to AuthContext
- The caller comes from the bearer token or the session cookie
- No identity -> 401, inactive account -> 403, missing permission -> 403
"""

from __future__ import annotations

import logging
from typing import Callable

from fastapi import HTTPException, Request

from hoteldesk.auth.context import AuthContext, Permission, parse_permission
from hoteldesk.auth.service import AuthService

logger = logging.getLogger(__name__)

INSUFFICIENT_PERMISSIONS_MESSAGE = "Insufficient permissions"


def get_auth_service(request: Request) -> AuthService:
    return request.app.state.auth_service


class Policy:
    """
    Permissions a request must hold.

        require("roles.read")                       # single permission
        require("roles.read", "users.read")         # all of these
        require_any("tickets.read", "audit.read")   # any of these
    """

    def __init__(self, permissions: list[Permission] | None = None, require_all: bool = True):
        self.permissions = permissions or []
        self.require_all_permissions = require_all
        # Malformed names fail at import time, not on the first request
        for permission in self.permissions:
            parse_permission(permission)

    def check(self, ctx: AuthContext) -> bool:
        if not self.permissions:
            return True
        if self.require_all_permissions:
            return ctx.can_all(*self.permissions)
        return ctx.can_any(*self.permissions)


# =============================================================================
# Main Interface
# =============================================================================


def require(*permissions: Permission) -> Callable:
    """
    Require every listed permission to access a route.

    Usage:
        @router.get("/admin/roles")
        async def list_roles(ctx: AuthContext = Depends(require("roles.read"))):
            ...
    """
    return _create_dependency(Policy(list(permissions), require_all=True))


def require_any(*permissions: Permission) -> Callable:
    """Require ANY of the listed permissions."""
    return _create_dependency(Policy(list(permissions), require_all=False))


def require_auth() -> Callable:
    """Just require an authenticated, active user."""
    return _create_dependency(Policy())


# =============================================================================
# Internal: Create the FastAPI Dependency
# =============================================================================


async def resolve_context(request: Request) -> AuthContext:
    """Build the AuthContext for a request or raise 401/403."""
    service = get_auth_service(request)
    identity = service.resolve_identity(request.headers)

    result = await service.resolve_user(identity)
    if not result.ok:
        raise HTTPException(status_code=result.error.kind.status_code, detail=result.error.message)

    user = result.value
    _, effective = await service.effective_roles(user)
    return AuthContext(user=user, identity=identity, roles=effective)


def _create_dependency(policy: Policy) -> Callable:
    async def dependency(request: Request) -> AuthContext:
        ctx = await resolve_context(request)
        if not policy.check(ctx):
            logger.info("Denied %s %s for user %s", request.method, request.url.path, ctx.user_id)
            raise HTTPException(status_code=403, detail=INSUFFICIENT_PERMISSIONS_MESSAGE)
        return ctx

    return dependency
