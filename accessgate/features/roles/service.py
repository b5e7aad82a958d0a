"""
Role administration.

Keeps a role's feature references and its grants in step: every role
mutation updates `role_features` first and then hands the permission payload
to PermissionAdministrationService in the matching mode.
"""
from typing import Iterable, List, Optional

from sqlalchemy import select, delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from accessgate.core.database.errors import storage_errors
from accessgate.core.exceptions import InvalidFeatureReference, ResourceConflict, ResourceNotFound
from accessgate.features.catalog.models import Feature
from accessgate.features.catalog.service import FeatureCatalog
from accessgate.features.permissions.admin import PermissionAdministrationService, non_empty
from accessgate.features.permissions.schemas import FeaturePermissionItem, GrantWithFeature, PermissionTriple
from accessgate.features.permissions.store import PermissionStore
from accessgate.features.roles.models import Role
from accessgate.features.users.models import user_roles
from accessgate.utils import get_logger


log = get_logger(__name__)


class RoleService:

    def __init__(self, db: AsyncSession):
        self.db = db
        self.catalog = FeatureCatalog(db)
        self.store = PermissionStore(db)
        self.permissions = PermissionAdministrationService(self.store)

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    async def get_role(self, role_id: str) -> Role:
        with storage_errors("get_role"):
            result = await self.db.execute(select(Role).where(Role.id == role_id))
            role = result.scalars().first()
        if role is None:
            raise ResourceNotFound(f"Role with ID '{role_id}' not found")
        return role

    async def find_by_name(self, name: str) -> Optional[Role]:
        with storage_errors("find_role"):
            result = await self.db.execute(select(Role).where(Role.name == name))
            return result.scalars().first()

    async def list_roles(self, skip: int = 0, limit: int = 100) -> List[Role]:
        with storage_errors("list_roles"):
            result = await self.db.execute(select(Role).order_by(Role.name).offset(skip).limit(limit))
            return list(result.scalars().all())

    async def get_grants(self, role_id: str) -> List[GrantWithFeature]:
        rows = await self.store.list_grants_for_role(role_id)
        return [
            GrantWithFeature(
                feature_id=grant.feature_id,
                feature_name=feature.name if feature is not None else None,
                permissions=PermissionTriple.model_validate(grant),
            )
            for grant, feature in rows
        ]

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def create_role(self, name: str, items: List[FeaturePermissionItem], is_internal: bool = False) -> Role:
        if await self.find_by_name(name) is not None:
            raise ResourceConflict(f"Role '{name}' already exists")

        await self._check_features(item.feature_id for item in items)
        features = await self._load_features(item.feature_id for item in non_empty(items))

        role = Role(name=name, is_internal=is_internal, features=features)
        self.db.add(role)
        await self._commit(role, conflict=f"Role '{name}' already exists")

        await self.permissions.bulk_insert(role.id, items)
        log.info("Created role %s (%s) with %d feature(s)", role.name, role.id, len(features))
        return role

    async def update_role(
        self,
        role_id: str,
        name: Optional[str] = None,
        items: Optional[List[FeaturePermissionItem]] = None,
    ) -> Role:
        """Rename and/or merge feature permissions into the role."""
        role = await self.get_role(role_id)
        if name:
            role.name = name

        if items:
            await self._check_features(item.feature_id for item in items)
            current = {feature.id for feature in role.features}
            additions = await self._load_features(
                item.feature_id for item in non_empty(items) if item.feature_id not in current
            )
            role.features = list(role.features) + additions

        await self._commit(role, conflict=f"Role '{name}' already exists")

        if items:
            await self.permissions.bulk_update(role.id, items)
        return role

    async def replace_role_permissions(self, role_id: str, items: List[FeaturePermissionItem]) -> Role:
        """Revoke everything the role has and grant exactly `items`."""
        role = await self.get_role(role_id)
        await self._check_features(item.feature_id for item in items)
        role.features = await self._load_features(item.feature_id for item in non_empty(items))
        await self._commit(role)

        await self.permissions.bulk_replace(role.id, items)
        return role

    async def assign_feature_permissions(self, role_id: str, items: List[FeaturePermissionItem]) -> Role:
        """
        Overwrite all three flags for each listed feature and link it to the role.

        Unset flags are stored as false and all-false entries are kept, so this
        can record an explicit "no access" grant. Features not listed are left
        alone.
        """
        role = await self.get_role(role_id)
        await self._check_features(item.feature_id for item in items)
        current = {feature.id for feature in role.features}
        additions = await self._load_features(
            item.feature_id for item in items if item.feature_id not in current
        )
        if additions:
            role.features = list(role.features) + additions
            await self._commit(role)

        await self.permissions.assign(role.id, items)
        return role

    async def remove_feature_from_role(self, role_id: str, feature_id: str) -> Role:
        role = await self.get_role(role_id)
        role.features = [feature for feature in role.features if feature.id != feature_id]
        await self._commit(role)

        await self.permissions.delete_one(role.id, feature_id)
        return role

    async def delete_role(self, role_id: str) -> None:
        """Remove the role's grants, then the role and its assignments."""
        role = await self.get_role(role_id)
        await self.permissions.delete_all_for_role(role.id)

        with storage_errors("delete_role"):
            await self.db.execute(delete(user_roles).where(user_roles.c.role_id == role.id))
            await self.db.delete(role)
            await self.db.commit()
        log.info("Deleted role %s (%s)", role.name, role.id)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _check_features(self, feature_ids: Iterable[str]) -> None:
        missing = await self.catalog.find_missing(feature_ids)
        if missing:
            raise InvalidFeatureReference(missing)

    async def _load_features(self, feature_ids: Iterable[str]) -> List[Feature]:
        wanted = list(dict.fromkeys(feature_ids))
        if not wanted:
            return []
        with storage_errors("load_features"):
            result = await self.db.execute(select(Feature).where(Feature.id.in_(wanted)))
            by_id = {feature.id: feature for feature in result.scalars().all()}
        return [by_id[feature_id] for feature_id in wanted if feature_id in by_id]

    async def _commit(self, role: Role, conflict: str = "Role already exists") -> None:
        with storage_errors("save_role"):
            try:
                await self.db.commit()
            except IntegrityError:
                await self.db.rollback()
                raise ResourceConflict(conflict)
            await self.db.refresh(role, attribute_names=["name", "created_at", "updated_at"])
