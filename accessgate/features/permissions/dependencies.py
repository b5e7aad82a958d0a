"""
FastAPI dependencies for the authorization engine and route guards.

Every guarded route is declared in ROUTE_REQUIREMENTS by a route id, at
import time, before its handler is defined:

    register_route("roles.create", feature=ROLE_MANAGEMENT, permission="write")

    @router.post("")
    async def create_role(..., principal: Principal = Depends(guard("roles.create"))):
        ...

`guard` refuses route ids that were never registered, so a typo fails at
startup instead of leaving the endpoint open.
"""
from typing import Annotated, Dict, Iterable, Optional

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from accessgate.core.database.engine import get_db
from accessgate.features.catalog.service import FeatureCatalog
from accessgate.features.permissions.admin import PermissionAdministrationService
from accessgate.features.permissions.engine import AuthorizationEngine
from accessgate.features.permissions.resolver import PermissionResolver
from accessgate.features.permissions.schemas import AccessRequirement, Action
from accessgate.features.permissions.store import PermissionStore
from accessgate.features.users.dependencies import Principal, get_current_principal
from accessgate.features.users.directory import PrincipalDirectory


# Feature names the service's own endpoints are gated on
FEATURE_MANAGEMENT = "Feature Management"
ROLE_MANAGEMENT = "Role Management"
USER_MANAGEMENT = "User Management"

BUILTIN_FEATURES = (FEATURE_MANAGEMENT, ROLE_MANAGEMENT, USER_MANAGEMENT)


ROUTE_REQUIREMENTS: Dict[str, AccessRequirement] = {}


def register_route(
    route_id: str,
    feature: Optional[str] = None,
    permission: Optional[Action] = None,
    role_names: Iterable[str] = (),
) -> AccessRequirement:
    """Declare what `route_id` requires; re-registering overwrites."""
    requirement = AccessRequirement(feature=feature, permission=permission, role_names=tuple(role_names))
    ROUTE_REQUIREMENTS[route_id] = requirement
    return requirement


def get_permission_store(db: Annotated[AsyncSession, Depends(get_db)]) -> PermissionStore:
    return PermissionStore(db)


def get_admin_service(
    store: Annotated[PermissionStore, Depends(get_permission_store)]
) -> PermissionAdministrationService:
    return PermissionAdministrationService(store)


def get_resolver(
    db: Annotated[AsyncSession, Depends(get_db)],
    store: Annotated[PermissionStore, Depends(get_permission_store)],
) -> PermissionResolver:
    return PermissionResolver(FeatureCatalog(db), store)


def get_engine(
    db: Annotated[AsyncSession, Depends(get_db)],
    store: Annotated[PermissionStore, Depends(get_permission_store)],
) -> AuthorizationEngine:
    return AuthorizationEngine(PrincipalDirectory(db), store)


def guard(route_id: str):
    """
    FastAPI dependency enforcing the requirement registered for `route_id`.

    Returns the current principal when allowed; raises the matching
    PolicyDenied subclass (403) otherwise.
    """
    if route_id not in ROUTE_REQUIREMENTS:
        raise KeyError(f"No access requirement registered for route {route_id!r}")

    async def guard_dependency(
        principal: Annotated[Principal, Depends(get_current_principal)],
        engine: Annotated[AuthorizationEngine, Depends(get_engine)],
    ) -> Principal:
        await engine.enforce(principal.user_id, ROUTE_REQUIREMENTS[route_id])
        return principal

    return guard_dependency
