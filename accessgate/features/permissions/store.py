"""
Permission store: durable (role_id, feature_id) -> flags.

Absence is never an error here: lookups return None and deletes return the
number of rows removed (0 when there was nothing to remove). Driver failures
surface as StorageUnavailable. Every mutation commits on its own, so a bulk
caller that fails halfway leaves the earlier steps in place.
"""
from typing import List, Optional, Tuple

from sqlalchemy import select, delete, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from accessgate.core.database.errors import storage_errors
from accessgate.features.catalog.models import Feature
from accessgate.features.permissions.models import FeaturePermission
from accessgate.utils import get_logger


log = get_logger(__name__)


class PermissionStore:

    def __init__(self, db: AsyncSession):
        self.db = db

    async def find_grant(self, role_id: str, feature_id: str) -> Optional[FeaturePermission]:
        stmt = select(FeaturePermission).where(
            FeaturePermission.role_id == role_id,
            FeaturePermission.feature_id == feature_id,
        )
        with storage_errors("find_grant"):
            result = await self.db.execute(stmt)
            return result.scalars().first()

    async def upsert_grant(
        self,
        role_id: str,
        feature_id: str,
        read: bool = False,
        write: bool = False,
        admin: bool = False,
    ) -> FeaturePermission:
        """
        Insert the grant, or overwrite the flags of the existing one.

        If another writer inserts the same pair between our lookup and our
        insert, the unique constraint fires; we then overwrite their row.
        """
        grant = await self.find_grant(role_id, feature_id)
        with storage_errors("upsert_grant"):
            if grant is None:
                grant = FeaturePermission(
                    role_id=role_id, feature_id=feature_id, read=read, write=write, admin=admin
                )
                self.db.add(grant)
                try:
                    await self.db.commit()
                except IntegrityError:
                    await self.db.rollback()
                    log.info("Concurrent insert for role=%s feature=%s, overwriting", role_id, feature_id)
                    grant = await self.find_grant(role_id, feature_id)
                    if grant is None:
                        raise
                    self._set_flags(grant, read, write, admin)
                    await self.db.commit()
            else:
                self._set_flags(grant, read, write, admin)
                await self.db.commit()
            await self.db.refresh(grant)

        log.debug(
            "Upserted grant role=%s feature=%s read=%s write=%s admin=%s",
            role_id, feature_id, read, write, admin,
        )
        return grant

    async def list_grants_for_role(self, role_id: str) -> List[Tuple[FeaturePermission, Optional[Feature]]]:
        """Grants of a role joined to their feature (None if the feature is gone)."""
        stmt = (
            select(FeaturePermission, Feature)
            .outerjoin(Feature, Feature.id == FeaturePermission.feature_id)
            .where(FeaturePermission.role_id == role_id)
        )
        with storage_errors("list_grants_for_role"):
            result = await self.db.execute(stmt)
            return [(grant, feature) for grant, feature in result.all()]

    async def count_grants(self, role_id: str, feature_id: Optional[str] = None) -> int:
        stmt = select(FeaturePermission.id).where(FeaturePermission.role_id == role_id)
        if feature_id is not None:
            stmt = stmt.where(FeaturePermission.feature_id == feature_id)
        with storage_errors("count_grants"):
            result = await self.db.execute(stmt)
            return len(result.scalars().all())

    async def delete_grants_for_role(self, role_id: str) -> int:
        with storage_errors("delete_grants_for_role"):
            result = await self.db.execute(
                delete(FeaturePermission).where(FeaturePermission.role_id == role_id)
            )
            await self.db.commit()
        log.debug("Deleted %s grant(s) for role=%s", result.rowcount, role_id)
        return result.rowcount or 0

    async def delete_grant(self, role_id: str, feature_id: str) -> int:
        with storage_errors("delete_grant"):
            result = await self.db.execute(
                delete(FeaturePermission).where(
                    FeaturePermission.role_id == role_id,
                    FeaturePermission.feature_id == feature_id,
                )
            )
            await self.db.commit()
        return result.rowcount or 0

    @staticmethod
    def _set_flags(grant: FeaturePermission, read: bool, write: bool, admin: bool) -> None:
        grant.read = read
        grant.write = write
        grant.admin = admin
        # Resubmitting identical flags still counts as a write
        grant.updated_at = func.now()
