"""
Feature catalog lookups used by the resolver and role administration.
"""
from typing import Iterable, List, Optional, Set

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from accessgate.core.database.errors import storage_errors
from accessgate.core.exceptions import ResourceConflict, ResourceNotFound
from accessgate.features.catalog.models import Feature, make_unique_id
from accessgate.utils import get_logger


log = get_logger(__name__)


class FeatureCatalog:
    """Resolves feature names to ids and back."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def resolve_feature_id(self, name: str) -> Optional[str]:
        """Return the id of the feature called `name`, or None."""
        with storage_errors("resolve_feature_id"):
            result = await self.db.execute(select(Feature.id).where(Feature.name == name))
            return result.scalar_one_or_none()

    async def get(self, feature_id: str) -> Optional[Feature]:
        with storage_errors("get_feature"):
            result = await self.db.execute(select(Feature).where(Feature.id == feature_id))
            return result.scalars().first()

    async def find_missing(self, feature_ids: Iterable[str]) -> Set[str]:
        """Return the subset of `feature_ids` that the catalog does not know."""
        wanted = {str(feature_id) for feature_id in feature_ids}
        if not wanted:
            return set()
        with storage_errors("find_features"):
            result = await self.db.execute(select(Feature.id).where(Feature.id.in_(wanted)))
            found = set(result.scalars().all())
        return wanted - found

    async def list_features(self, skip: int = 0, limit: int = 100) -> List[Feature]:
        with storage_errors("list_features"):
            stmt = select(Feature).order_by(Feature.name).offset(skip).limit(limit)
            result = await self.db.execute(stmt)
            return list(result.scalars().all())

    async def create_feature(self, name: str, is_active: bool = True) -> Feature:
        """Create a feature; its unique_id is derived from the name."""
        unique_id = make_unique_id(name)
        with storage_errors("create_feature"):
            existing = await self.db.execute(
                select(Feature).where((Feature.name == name) | (Feature.unique_id == unique_id))
            )
            if existing.scalars().first() is not None:
                raise ResourceConflict("Feature already exists")

            feature = Feature(name=name, unique_id=unique_id, is_active=is_active)
            self.db.add(feature)
            try:
                await self.db.commit()
            except IntegrityError:
                await self.db.rollback()
                raise ResourceConflict("Feature already exists")
            await self.db.refresh(feature)

        log.info("Created feature %s (%s)", feature.name, feature.id)
        return feature

    async def update_feature(self, feature_id: str, name: Optional[str] = None,
                             is_active: Optional[bool] = None) -> Feature:
        feature = await self.get(feature_id)
        if feature is None:
            raise ResourceNotFound("Feature not found")
        if name is not None:
            feature.name = name
            feature.unique_id = make_unique_id(name)
        if is_active is not None:
            feature.is_active = is_active
        with storage_errors("update_feature"):
            try:
                await self.db.commit()
            except IntegrityError:
                await self.db.rollback()
                raise ResourceConflict("Feature already exists")
            await self.db.refresh(feature)
        return feature
