"""
Role administration.

Permission names are validated against the catalog here, on edit, so the
request-time decision never has to.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response

from hoteldesk.auth.capabilities import catalog_as_dict, validate_permissions
from hoteldesk.auth.context import AuthContext
from hoteldesk.auth.policies import get_auth_service, require
from hoteldesk.auth.service import AuthService
from hoteldesk.core.models import APIModel, Role, UserResponse
from hoteldesk.storage.base import NotFoundError, SystemRoleError, UserDirectory

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


# =============================================================================
# Models
# =============================================================================


class RoleResponse(APIModel):
    id: str
    name: str
    description: str | None = None
    is_system: bool
    permissions: dict[str, list[str]]

    @classmethod
    def from_role(cls, role: Role) -> RoleResponse:
        return cls(
            id=role.id,
            name=role.name,
            description=role.description,
            is_system=role.is_system,
            permissions={k: sorted(v) for k, v in sorted(role.permissions.items())},
        )


class RoleListResponse(APIModel):
    roles: list[RoleResponse]
    catalog: dict[str, list[str]]


class UpdateRoleRequest(APIModel):
    description: str | None = None
    permissions: dict[str, list[str]] | None = None


class SetUserRolesRequest(APIModel):
    role_ids: list[str]


class SetUserStatusRequest(APIModel):
    is_active: bool


def get_directory(request: Request) -> UserDirectory:
    return request.app.state.directory


# =============================================================================
# Roles
# =============================================================================


@router.get("/roles", response_model=RoleListResponse)
async def list_roles(
    ctx: AuthContext = Depends(require("roles.read")),
    directory: UserDirectory = Depends(get_directory),
):
    roles = await directory.list_roles()
    return RoleListResponse(
        roles=[RoleResponse.from_role(r) for r in roles],
        catalog=catalog_as_dict(),
    )


@router.put("/roles/{role_id}", response_model=RoleResponse)
async def update_role(
    role_id: str,
    data: UpdateRoleRequest,
    ctx: AuthContext = Depends(require("roles.write")),
    directory: UserDirectory = Depends(get_directory),
):
    permissions = None
    if data.permissions is not None:
        try:
            permissions = validate_permissions(data.permissions)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))

    try:
        role = await directory.update_role(role_id, description=data.description, permissions=permissions)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    logger.info("Role %s updated by %s", role.id, ctx.user_id)
    return RoleResponse.from_role(role)


@router.delete("/roles/{role_id}", status_code=204)
async def delete_role(
    role_id: str,
    ctx: AuthContext = Depends(require("roles.write")),
    directory: UserDirectory = Depends(get_directory),
):
    try:
        role = await directory.delete_role(role_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except SystemRoleError as e:
        raise HTTPException(status_code=400, detail=str(e))

    logger.info("Role %s (%s) deleted by %s", role.id, role.name, ctx.user_id)
    return Response(status_code=204)


# =============================================================================
# Users
# =============================================================================


@router.put("/users/{user_id}/roles", response_model=UserResponse)
async def set_user_roles(
    user_id: str,
    data: SetUserRolesRequest,
    ctx: AuthContext = Depends(require("users.write")),
    service: AuthService = Depends(get_auth_service),
):
    try:
        user = await service.directory.set_user_roles(user_id, data.role_ids)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    logger.info("Roles of user %s set by %s", user.id, ctx.user_id)
    return await service.build_user_view(user)


@router.put("/users/{user_id}/status", response_model=UserResponse)
async def set_user_status(
    user_id: str,
    data: SetUserStatusRequest,
    ctx: AuthContext = Depends(require("users.write")),
    service: AuthService = Depends(get_auth_service),
):
    user = await service.directory.update_user_status(user_id, data.is_active)
    if user is None:
        raise HTTPException(status_code=404, detail=f"User {user_id} not found")

    logger.info("User %s set %s by %s", user.id, "active" if user.is_active else "inactive", ctx.user_id)
    return await service.build_user_view(user)
