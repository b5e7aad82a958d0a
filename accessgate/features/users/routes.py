"""
User feature routes: registering principals and assigning roles.
"""
from typing import Annotated
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from accessgate.core.database.engine import get_db
from accessgate.core.exceptions import ResourceNotFound
from accessgate.features.permissions.dependencies import USER_MANAGEMENT, guard, register_route
from accessgate.features.users.dependencies import Principal, get_current_principal, get_principal_directory
from accessgate.features.users.directory import PrincipalDirectory
from accessgate.features.users.schemas import RoleAssignment, UserCreate, UserResponse, UserRolesResponse
from accessgate.features.users.service import UserService


router = APIRouter()

register_route("users.create", feature=USER_MANAGEMENT, permission="write")
register_route("users.assign_roles", feature=USER_MANAGEMENT, permission="admin")
register_route("users.read_roles", feature=USER_MANAGEMENT, permission="read")


@router.get("/me/roles", response_model=UserRolesResponse)
async def get_my_roles(
    principal: Annotated[Principal, Depends(get_current_principal)],
    directory: Annotated[PrincipalDirectory, Depends(get_principal_directory)],
):
    """Roles of the current principal, in evaluation order."""
    return UserRolesResponse(user_id=principal.user_id, roles=await directory.resolve_roles(principal.user_id))


@router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
    payload: UserCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
    _principal: Annotated[Principal, Depends(guard("users.create"))],
):
    """Register a user."""
    return await UserService(db).create_user(payload.email, payload.name)


@router.put("/{user_id}/roles", response_model=UserRolesResponse)
async def assign_roles(
    user_id: str,
    payload: RoleAssignment,
    db: Annotated[AsyncSession, Depends(get_db)],
    _principal: Annotated[Principal, Depends(guard("users.assign_roles"))],
):
    """Replace a user's role assignments."""
    await UserService(db).assign_roles(user_id, payload.role_ids)
    return UserRolesResponse(user_id=user_id, roles=await PrincipalDirectory(db).resolve_roles(user_id))


@router.get("/{user_id}/roles", response_model=UserRolesResponse)
async def get_user_roles(
    user_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    _principal: Annotated[Principal, Depends(guard("users.read_roles"))],
):
    """Roles of a user, in evaluation order."""
    if await UserService(db).get_user(user_id) is None:
        raise ResourceNotFound("User not found")
    return UserRolesResponse(user_id=user_id, roles=await PrincipalDirectory(db).resolve_roles(user_id))
