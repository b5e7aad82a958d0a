"""
Request-time authorization decisions.

Evaluation order:
1. Endpoints that do not declare both a feature and a permission are open.
2. A principal with no roles is denied.
3. A declared role-name allow-list must match at least one of the roles.
4. Roles are walked in directory order, and within each role its features;
   features with another name are skipped, and the grant for the
   (role, feature) pair is read from the store. The first grant whose flag for
   the required permission is set allows the request and stops the walk.
5. Anything else is denied for missing permission.

Flags are independent: `admin` does not satisfy a `read` or `write` check.
Nothing is cached between calls, so grant changes apply to the next request.
"""
from typing import Optional

from pydantic import BaseModel, ConfigDict

from accessgate.core import request_context
from accessgate.core.exceptions import (
    NoRolesAssigned,
    PermissionDenied,
    POLICY_DENIALS,
    RoleNotPermitted,
)
from accessgate.features.permissions.schemas import AccessRequirement
from accessgate.features.permissions.store import PermissionStore
from accessgate.features.users.directory import PrincipalDirectory
from accessgate.utils import get_logger


log = get_logger(__name__)


class Decision(BaseModel):
    """Allow, or Deny with a reason code and a human-readable reason."""
    allowed: bool
    code: Optional[str] = None
    reason: Optional[str] = None

    model_config = ConfigDict(frozen=True)

    @classmethod
    def allow(cls) -> "Decision":
        return cls(allowed=True)

    @classmethod
    def deny(cls, code: str, reason: str) -> "Decision":
        return cls(allowed=False, code=code, reason=reason)

    def raise_for_denial(self) -> None:
        """Raise the policy exception matching this denial; no-op when allowed."""
        if self.allowed:
            return
        raise POLICY_DENIALS[self.code](self.reason)


NO_ROLES = Decision.deny(NoRolesAssigned.code, "no roles assigned")
ROLE_NOT_PERMITTED = Decision.deny(RoleNotPermitted.code, "role not permitted")
MISSING_PERMISSION = Decision.deny(PermissionDenied.code, "missing permission for feature")


class AuthorizationEngine:

    def __init__(self, directory: PrincipalDirectory, store: PermissionStore):
        self.directory = directory
        self.store = store

    async def authorize(self, principal_id: str, requirement: AccessRequirement) -> Decision:
        """
        Decide whether `principal_id` satisfies `requirement`.

        Storage failures propagate as StorageUnavailable; they are never
        reported as a denial.
        """
        if not requirement.is_gated:
            return Decision.allow()

        roles = await self.directory.resolve_roles(principal_id)
        if not roles:
            return self._denied(principal_id, requirement, NO_ROLES)

        if requirement.role_names:
            allowed_names = set(requirement.role_names)
            if not any(role.role_name in allowed_names for role in roles):
                return self._denied(principal_id, requirement, ROLE_NOT_PERMITTED)

        for role in roles:
            for feature in role.features:
                if feature.feature_name != requirement.feature:
                    continue
                grant = await self.store.find_grant(role.role_id, feature.feature_id)
                if grant is not None and grant.allows(requirement.permission):
                    log.debug(
                        f"User {principal_id} granted {requirement.permission} on "
                        f"{requirement.feature} via role {role.role_name}"
                    )
                    request_context.set("granted_by_role", role.role_id)
                    return Decision.allow()

        return self._denied(principal_id, requirement, MISSING_PERMISSION)

    async def enforce(self, principal_id: str, requirement: AccessRequirement) -> None:
        """Like `authorize`, but raise the policy exception on denial."""
        decision = await self.authorize(principal_id, requirement)
        decision.raise_for_denial()

    @staticmethod
    def _denied(principal_id: str, requirement: AccessRequirement, decision: Decision) -> Decision:
        log.info(
            "Denied user=%s feature=%s permission=%s roles=%s: %s",
            principal_id,
            requirement.feature,
            requirement.permission,
            list(requirement.role_names),
            decision.reason,
        )
        return decision
