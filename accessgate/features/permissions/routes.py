"""
Permission API routes.

Lets callers ask the engine about the current principal and look up the
effective flags of a role for a feature by name.
"""
from typing import Annotated, Optional
from fastapi import APIRouter, Depends, Query

from accessgate.features.permissions.dependencies import (
    ROLE_MANAGEMENT,
    get_engine,
    get_resolver,
    guard,
    register_route,
)
from accessgate.features.permissions.engine import AuthorizationEngine
from accessgate.features.permissions.resolver import PermissionResolver
from accessgate.features.permissions.schemas import (
    PermissionCheckRequest,
    PermissionCheckResponse,
    PermissionTriple,
)
from accessgate.features.users.dependencies import Principal, get_current_principal


router = APIRouter()

register_route("permissions.resolve", feature=ROLE_MANAGEMENT, permission="read")


@router.post("/check", response_model=PermissionCheckResponse)
async def check_permission(
    check: PermissionCheckRequest,
    principal: Annotated[Principal, Depends(get_current_principal)],
    engine: Annotated[AuthorizationEngine, Depends(get_engine)],
):
    """Evaluate a requirement for the current principal without enforcing it."""
    decision = await engine.authorize(principal.user_id, check.to_requirement())
    return PermissionCheckResponse(allowed=decision.allowed, reason=decision.reason, code=decision.code)


@router.get("/roles/{role_id}/resolve", response_model=Optional[PermissionTriple])
async def resolve_role_permission(
    role_id: str,
    resolver: Annotated[PermissionResolver, Depends(get_resolver)],
    _principal: Annotated[Principal, Depends(guard("permissions.resolve"))],
    feature: str = Query(..., min_length=1, description="Feature name"),
):
    """Effective flags of a role for a feature; null when the role holds no grant."""
    return await resolver.resolve(role_id, feature)
