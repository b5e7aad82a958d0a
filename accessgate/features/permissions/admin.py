"""
Permission administration: maintaining grants as roles are authored.

Three bulk modes exist and callers must pick deliberately:

- bulk_insert: role creation. Upserts every non-empty entry.
- bulk_update: additive merge. Only flags present in an entry change; grants
  for features missing from the payload are left alone.
- bulk_replace: destructive. Deletes every grant of the role first, so a
  feature missing from the payload is revoked.

All three drop entries whose flags are all false/unset before touching the
store. None of them runs in a multi-record transaction: each step commits on
its own and is idempotent, so a failed bulk call can simply be re-run.
"""
from typing import Iterable, List

from accessgate.features.permissions.models import FeaturePermission
from accessgate.features.permissions.schemas import FeaturePermissionItem
from accessgate.features.permissions.store import PermissionStore
from accessgate.utils import get_logger


log = get_logger(__name__)


def non_empty(items: Iterable[FeaturePermissionItem]) -> List[FeaturePermissionItem]:
    """Entries granting at least one flag."""
    return [item for item in items if not item.is_empty()]


class PermissionAdministrationService:

    def __init__(self, store: PermissionStore):
        self.store = store

    async def assign(self, role_id: str, items: Iterable[FeaturePermissionItem]) -> List[FeaturePermission]:
        """
        Single-record upsert for each entry, overwriting all three flags.

        Unlike the bulk paths this does not filter all-false entries; an
        explicit all-false assignment is stored as such.
        """
        saved = []
        for item in items:
            saved.append(
                await self.store.upsert_grant(
                    role_id,
                    item.feature_id,
                    read=bool(item.read),
                    write=bool(item.write),
                    admin=bool(item.admin),
                )
            )
        return saved

    async def bulk_insert(self, role_id: str, items: Iterable[FeaturePermissionItem]) -> List[FeaturePermission]:
        items = non_empty(items)
        saved = []
        for item in items:
            saved.append(
                await self.store.upsert_grant(
                    role_id,
                    item.feature_id,
                    read=bool(item.read),
                    write=bool(item.write),
                    admin=bool(item.admin),
                )
            )
        log.info("Inserted %d grant(s) for role %s", len(saved), role_id)
        return saved

    async def bulk_update(self, role_id: str, items: Iterable[FeaturePermissionItem]) -> List[FeaturePermission]:
        items = non_empty(items)
        saved = []
        for item in items:
            existing = await self.store.find_grant(role_id, item.feature_id)
            if existing is not None:
                read = existing.read if item.read is None else item.read
                write = existing.write if item.write is None else item.write
                admin = existing.admin if item.admin is None else item.admin
            else:
                read, write, admin = bool(item.read), bool(item.write), bool(item.admin)
            saved.append(
                await self.store.upsert_grant(role_id, item.feature_id, read=read, write=write, admin=admin)
            )
        log.info("Merged %d grant(s) into role %s", len(saved), role_id)
        return saved

    async def bulk_replace(self, role_id: str, items: Iterable[FeaturePermissionItem]) -> List[FeaturePermission]:
        items = non_empty(items)
        removed = await self.store.delete_grants_for_role(role_id)
        saved = []
        for item in items:
            saved.append(
                await self.store.upsert_grant(
                    role_id,
                    item.feature_id,
                    read=bool(item.read),
                    write=bool(item.write),
                    admin=bool(item.admin),
                )
            )
        log.info("Replaced %d grant(s) of role %s with %d", removed, role_id, len(saved))
        return saved

    async def delete_all_for_role(self, role_id: str) -> int:
        removed = await self.store.delete_grants_for_role(role_id)
        log.info("Revoked all %d grant(s) of role %s", removed, role_id)
        return removed

    async def delete_one(self, role_id: str, feature_id: str) -> int:
        removed = await self.store.delete_grant(role_id, feature_id)
        log.info("Revoked feature %s from role %s", feature_id, role_id)
        return removed
