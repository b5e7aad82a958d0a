"""
Permission resolver: (role_id, feature name) -> effective flags.
"""
from typing import Optional

from accessgate.core.exceptions import UnknownFeature
from accessgate.features.catalog.service import FeatureCatalog
from accessgate.features.permissions.schemas import PermissionTriple
from accessgate.features.permissions.store import PermissionStore


class PermissionResolver:
    """
    Bridges the feature catalog and the permission store.

    `resolve` returns None when the role holds no grant for the feature; that
    is a normal outcome meaning "no permissions", not an error.
    """

    def __init__(self, catalog: FeatureCatalog, store: PermissionStore):
        self.catalog = catalog
        self.store = store

    async def resolve(self, role_id: str, feature_name: str) -> Optional[PermissionTriple]:
        feature_id = await self.catalog.resolve_feature_id(feature_name)
        if feature_id is None:
            raise UnknownFeature(feature_name)

        grant = await self.store.find_grant(role_id, feature_id)
        if grant is None:
            return None
        return PermissionTriple.model_validate(grant)
