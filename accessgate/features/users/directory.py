"""
Principal directory: user id -> assigned roles with their features.

The engine takes one snapshot per decision. Roles and their features are
fetched in a single batched load (the role query plus one selectin query for
all role features), so evaluation never issues a query per role here.
"""
from typing import List, Tuple

from pydantic import BaseModel, ConfigDict
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from accessgate.core.database.errors import storage_errors
from accessgate.features.roles.models import Role
from accessgate.features.users.models import user_roles


class FeatureRef(BaseModel):
    """A feature as seen through a role."""
    feature_id: str
    feature_name: str

    model_config = ConfigDict(frozen=True)


class RoleSnapshot(BaseModel):
    """A role held by a principal, with the features it covers."""
    role_id: str
    role_name: str
    features: Tuple[FeatureRef, ...] = ()

    model_config = ConfigDict(frozen=True)


class PrincipalDirectory:

    def __init__(self, db: AsyncSession):
        self.db = db

    async def resolve_roles(self, user_id: str) -> List[RoleSnapshot]:
        """Return the user's roles in assignment order (empty if none)."""
        stmt = (
            select(Role)
            .join(user_roles, user_roles.c.role_id == Role.id)
            .where(user_roles.c.user_id == user_id)
            .order_by(user_roles.c.position, user_roles.c.assigned_at, Role.id)
            .options(selectinload(Role.features))
        )
        with storage_errors("resolve_roles"):
            result = await self.db.execute(stmt)
            roles = result.scalars().all()

        return [
            RoleSnapshot(
                role_id=role.id,
                role_name=role.name,
                features=tuple(
                    FeatureRef(feature_id=feature.id, feature_name=feature.name)
                    for feature in role.features
                ),
            )
            for role in roles
        ]
