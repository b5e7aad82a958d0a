"""Tests for the authorization decision engine."""

import pytest
import pytest_asyncio
from unittest.mock import AsyncMock

from accessgate.core.exceptions import (
    NoRolesAssigned,
    PermissionDenied,
    RoleNotPermitted,
    StorageUnavailable,
)
from accessgate.features.permissions.admin import PermissionAdministrationService
from accessgate.features.permissions.engine import AuthorizationEngine, Decision
from accessgate.features.permissions.schemas import AccessRequirement, FeaturePermissionItem
from accessgate.features.roles.service import RoleService
from accessgate.features.users.directory import PrincipalDirectory


def need(feature=None, permission=None, roles=()):
    return AccessRequirement(feature=feature, permission=permission, role_names=tuple(roles))


@pytest.fixture
def engine(db, store):
    return AuthorizationEngine(PrincipalDirectory(db), store)


class CountingStore:
    """Wraps a store and counts grant lookups."""

    def __init__(self, store):
        self.store = store
        self.lookups = []

    async def find_grant(self, role_id, feature_id):
        self.lookups.append((role_id, feature_id))
        return await self.store.find_grant(role_id, feature_id)


class TestUngatedEndpoints:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("requirement", [
        need(),
        need(feature="Events"),
        need(permission="write"),
        need(roles=["Editor"]),
    ])
    async def test_allow_without_feature_and_permission(self, requirement):
        """Nothing is looked up when the endpoint does not declare both."""
        directory = AsyncMock()
        engine = AuthorizationEngine(directory, AsyncMock())

        decision = await engine.authorize("anyone", requirement)

        assert decision.allowed is True
        directory.resolve_roles.assert_not_called()


class TestEditorScenario:

    @pytest_asyncio.fixture
    async def editor(self, build):
        role_id = await build.role("Editor", {"Events": {"write": True}, "Banners": {"read": True}})
        await build.feature("Offers")
        return await build.user("editor@example.com", [role_id])

    @pytest.mark.asyncio
    async def test_write_on_events_allowed(self, engine, editor):
        decision = await engine.authorize(editor, need("Events", "write"))
        assert decision.allowed is True

    @pytest.mark.asyncio
    async def test_write_on_banners_denied(self, engine, editor):
        decision = await engine.authorize(editor, need("Banners", "write"))
        assert decision.allowed is False
        assert decision.code == "permission_denied"
        assert decision.reason == "missing permission for feature"

    @pytest.mark.asyncio
    async def test_feature_without_grant_denied(self, engine, editor):
        """No grant at all resolves the same way as an explicit false."""
        decision = await engine.authorize(editor, need("Offers", "read"))
        assert decision == Decision.deny("permission_denied", "missing permission for feature")


class TestRoles:

    @pytest.mark.asyncio
    async def test_no_roles(self, engine, build):
        user_id = await build.user("nobody@example.com")
        decision = await engine.authorize(user_id, need("Events", "read"))
        assert (decision.allowed, decision.code, decision.reason) == (False, "no_roles_assigned", "no roles assigned")

    @pytest.mark.asyncio
    async def test_later_role_can_grant(self, engine, build):
        """Every role is checked, not only the first one."""
        r1 = await build.role("Reader", {"Events": {"read": True}})
        r2 = await build.role("Writer", {"Events": {"write": True}})
        user_id = await build.user("two@example.com", [r1, r2])

        decision = await engine.authorize(user_id, need("Events", "write"))

        assert decision.allowed is True

    @pytest.mark.asyncio
    async def test_first_satisfying_role_stops_iteration(self, db, store, build):
        r1 = await build.role("First", {"Events": {"write": True}})
        r2 = await build.role("Second", {"Events": {"write": True}})
        user_id = await build.user("both@example.com", [r1, r2])
        counting = CountingStore(store)
        engine = AuthorizationEngine(PrincipalDirectory(db), counting)

        assert (await engine.authorize(user_id, need("Events", "write"))).allowed
        assert counting.lookups == [(r1, build.features["Events"])]

    @pytest.mark.asyncio
    async def test_only_matching_features_are_looked_up(self, db, store, build):
        role_id = await build.role("Wide", {"Events": {"read": True}, "Banners": {"read": True}})
        user_id = await build.user("wide@example.com", [role_id])
        counting = CountingStore(store)
        engine = AuthorizationEngine(PrincipalDirectory(db), counting)

        await engine.authorize(user_id, need("Banners", "read"))

        assert counting.lookups == [(role_id, build.features["Banners"])]


class TestRoleAllowList:

    @pytest.mark.asyncio
    async def test_role_not_in_allow_list(self, engine, build):
        """Checked before the feature: even a full grant does not help."""
        role_id = await build.role("Editor", {"Events": {"read": True, "write": True, "admin": True}})
        user_id = await build.user("e@example.com", [role_id])

        decision = await engine.authorize(user_id, need("Events", "read", roles=["Administrator"]))

        assert (decision.allowed, decision.code, decision.reason) == (False, "role_not_permitted", "role not permitted")

    @pytest.mark.asyncio
    async def test_any_role_in_allow_list_passes(self, engine, build):
        other = await build.role("Support", {"Banners": {"read": True}})
        editor = await build.role("Editor", {"Events": {"write": True}})
        user_id = await build.user("e@example.com", [other, editor])

        decision = await engine.authorize(user_id, need("Events", "write", roles=["Editor", "Administrator"]))

        assert decision.allowed is True

    @pytest.mark.asyncio
    async def test_allow_list_does_not_replace_permission_check(self, engine, build):
        role_id = await build.role("Editor", {"Events": {"read": True}})
        user_id = await build.user("e@example.com", [role_id])

        decision = await engine.authorize(user_id, need("Events", "write", roles=["Editor"]))

        assert decision.code == "permission_denied"


class TestIndependentFlags:

    @pytest.mark.asyncio
    async def test_admin_does_not_imply_read(self, engine, build):
        role_id = await build.role("Boss", {"Events": {"read": False, "write": True, "admin": True}})
        user_id = await build.user("boss@example.com", [role_id])

        decision = await engine.authorize(user_id, need("Events", "read"))

        assert decision.allowed is False
        assert decision.code == "permission_denied"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("permission", ["read", "write", "admin"])
    async def test_each_flag_checked_by_name(self, engine, build, permission):
        role_id = await build.role("Single", {"Events": {permission: True}})
        user_id = await build.user("s@example.com", [role_id])

        for candidate in ("read", "write", "admin"):
            decision = await engine.authorize(user_id, need("Events", candidate))
            assert decision.allowed is (candidate == permission)


class TestFreshness:

    @pytest.mark.asyncio
    async def test_grant_changes_apply_to_next_call(self, engine, store, build):
        role_id = await build.role("Editor", {"Events": {"read": True}})
        user_id = await build.user("e@example.com", [role_id])
        assert not (await engine.authorize(user_id, need("Events", "write"))).allowed

        await PermissionAdministrationService(store).bulk_update(
            role_id, [FeaturePermissionItem(feature_id=build.features["Events"], write=True)]
        )

        assert (await engine.authorize(user_id, need("Events", "write"))).allowed

    @pytest.mark.asyncio
    async def test_revocation_applies_to_next_call(self, engine, store, build):
        role_id = await build.role("Editor", {"Events": {"write": True}})
        user_id = await build.user("e@example.com", [role_id])
        assert (await engine.authorize(user_id, need("Events", "write"))).allowed

        await PermissionAdministrationService(store).delete_all_for_role(role_id)

        assert not (await engine.authorize(user_id, need("Events", "write"))).allowed

    @pytest.mark.asyncio
    async def test_single_record_assignment_is_visible(self, db, engine, build):
        """A grant written feature by feature links the feature, so the engine finds it."""
        events = await build.feature("Events")
        role_id = await build.role("Plain", {})
        user_id = await build.user("plain@example.com", [role_id])
        assert not (await engine.authorize(user_id, need("Events", "write"))).allowed

        role = await RoleService(db).assign_feature_permissions(
            role_id, [FeaturePermissionItem(feature_id=events, write=True)]
        )

        assert role.feature_ids == [events]
        assert (await engine.authorize(user_id, need("Events", "write"))).allowed
        assert not (await engine.authorize(user_id, need("Events", "read"))).allowed


class TestFailures:

    @pytest.mark.asyncio
    async def test_storage_failure_is_not_a_denial(self):
        directory = AsyncMock()
        directory.resolve_roles.side_effect = StorageUnavailable("down")
        engine = AuthorizationEngine(directory, AsyncMock())

        with pytest.raises(StorageUnavailable):
            await engine.authorize("u", need("Events", "read"))

    @pytest.mark.asyncio
    async def test_enforce_raises_policy_exceptions(self, engine, build):
        nobody = await build.user("n@example.com")
        role_id = await build.role("Editor", {"Events": {"read": True}})
        editor = await build.user("e@example.com", [role_id])

        with pytest.raises(NoRolesAssigned):
            await engine.enforce(nobody, need("Events", "read"))
        with pytest.raises(RoleNotPermitted):
            await engine.enforce(editor, need("Events", "read", roles=["Admin"]))
        with pytest.raises(PermissionDenied) as exc_info:
            await engine.enforce(editor, need("Events", "write"))
        assert exc_info.value.message == "missing permission for feature"

        await engine.enforce(editor, need("Events", "read"))

    def test_allowed_decision_does_not_raise(self):
        Decision.allow().raise_for_denial()
