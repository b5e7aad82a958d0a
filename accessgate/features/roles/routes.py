"""
Role administration API routes.

PATCH merges permissions into a role; PUT on /permissions replaces them.
Both are gated on the Role Management feature.
"""
from typing import Annotated, List
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from accessgate.core.database.engine import get_db
from accessgate.features.permissions.dependencies import ROLE_MANAGEMENT, guard, register_route
from accessgate.features.roles.models import Role
from accessgate.features.roles.schemas import (
    MessageResponse,
    RoleCreate,
    RoleFeatureAssignment,
    RolePermissionsReplace,
    RoleResponse,
    RoleUpdate,
    RoleWithPermissions,
)
from accessgate.features.roles.service import RoleService
from accessgate.features.users.dependencies import Principal
from accessgate.utils import get_logger


log = get_logger(__name__)
router = APIRouter()

register_route("roles.list", feature=ROLE_MANAGEMENT, permission="read")
register_route("roles.read", feature=ROLE_MANAGEMENT, permission="read")
register_route("roles.create", feature=ROLE_MANAGEMENT, permission="write")
register_route("roles.update", feature=ROLE_MANAGEMENT, permission="write")
register_route("roles.assign_features", feature=ROLE_MANAGEMENT, permission="write")
register_route("roles.replace_permissions", feature=ROLE_MANAGEMENT, permission="admin")
register_route("roles.remove_feature", feature=ROLE_MANAGEMENT, permission="write")
register_route("roles.delete", feature=ROLE_MANAGEMENT, permission="admin")


async def _with_grants(service: RoleService, role: Role) -> RoleWithPermissions:
    return RoleWithPermissions(
        **RoleResponse.model_validate(role).model_dump(),
        feature_permissions=await service.get_grants(role.id),
    )


@router.post("", response_model=RoleWithPermissions, status_code=status.HTTP_201_CREATED)
async def create_role(
    payload: RoleCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
    principal: Annotated[Principal, Depends(guard("roles.create"))],
):
    """Create a role and insert its feature permissions."""
    service = RoleService(db)
    role = await service.create_role(payload.name, payload.feature_permissions)
    log.info("User %s created role %s", principal.user_id, role.id)
    return await _with_grants(service, role)


@router.get("", response_model=List[RoleResponse])
async def list_roles(
    db: Annotated[AsyncSession, Depends(get_db)],
    _principal: Annotated[Principal, Depends(guard("roles.list"))],
    skip: int = 0,
    limit: int = 100,
):
    """List roles."""
    return await RoleService(db).list_roles(skip=skip, limit=limit)


@router.get("/{role_id}", response_model=RoleWithPermissions)
async def get_role(
    role_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    _principal: Annotated[Principal, Depends(guard("roles.read"))],
):
    """Get a role with its feature permissions."""
    service = RoleService(db)
    return await _with_grants(service, await service.get_role(role_id))


@router.patch("/{role_id}", response_model=RoleWithPermissions)
async def update_role(
    role_id: str,
    payload: RoleUpdate,
    db: Annotated[AsyncSession, Depends(get_db)],
    principal: Annotated[Principal, Depends(guard("roles.update"))],
):
    """Rename a role and/or merge feature permissions into it."""
    service = RoleService(db)
    role = await service.update_role(role_id, name=payload.name, items=payload.feature_permissions)
    log.info("User %s updated role %s", principal.user_id, role_id)
    return await _with_grants(service, role)


@router.put("/{role_id}/permissions", response_model=RoleWithPermissions)
async def replace_role_permissions(
    role_id: str,
    payload: RolePermissionsReplace,
    db: Annotated[AsyncSession, Depends(get_db)],
    principal: Annotated[Principal, Depends(guard("roles.replace_permissions"))],
):
    """Replace every feature permission of a role (features left out are revoked)."""
    service = RoleService(db)
    role = await service.replace_role_permissions(role_id, payload.feature_permissions)
    log.warning("User %s replaced all permissions of role %s", principal.user_id, role_id)
    return await _with_grants(service, role)


@router.put("/{role_id}/features", response_model=RoleWithPermissions)
async def assign_feature_permissions(
    role_id: str,
    payload: RoleFeatureAssignment,
    db: Annotated[AsyncSession, Depends(get_db)],
    principal: Annotated[Principal, Depends(guard("roles.assign_features"))],
):
    """Set the flags of the listed features exactly as given; other features keep theirs."""
    service = RoleService(db)
    role = await service.assign_feature_permissions(role_id, payload.feature_permissions)
    log.info(
        "User %s assigned %d feature permission(s) on role %s",
        principal.user_id, len(payload.feature_permissions), role_id,
    )
    return await _with_grants(service, role)


@router.delete("/{role_id}/features/{feature_id}", response_model=MessageResponse)
async def remove_feature_from_role(
    role_id: str,
    feature_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    _principal: Annotated[Principal, Depends(guard("roles.remove_feature"))],
):
    """Revoke a single feature from a role."""
    await RoleService(db).remove_feature_from_role(role_id, feature_id)
    return {"message": "Feature removed from role successfully"}


@router.delete("/{role_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_role(
    role_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    principal: Annotated[Principal, Depends(guard("roles.delete"))],
):
    """Delete a role and all of its grants."""
    await RoleService(db).delete_role(role_id)
    log.info("User %s deleted role %s", principal.user_id, role_id)
    return None
