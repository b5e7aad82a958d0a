"""End-to-end tests of the HTTP surface with an in-memory database."""

import jwt
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from unittest.mock import AsyncMock

from accessgate.core import config
from accessgate.core.database.engine import get_db
from accessgate.core.exceptions import StorageUnavailable, Unauthenticated
from accessgate.features.permissions.dependencies import (
    BUILTIN_FEATURES,
    ROLE_MANAGEMENT,
    get_engine,
)
from accessgate.features.permissions.engine import AuthorizationEngine
from accessgate.features.users.dependencies import verify_jwt_token
from accessgate.main import app

from conftest import make_token


ALL = {"read": True, "write": True, "admin": True}


@pytest_asyncio.fixture
async def client(db):
    async def override_get_db():
        try:
            yield db
            await db.commit()
        except Exception:
            await db.rollback()
            raise

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def admin(build):
    role_id = await build.role("Administrator", {name: ALL for name in BUILTIN_FEATURES})
    user_id = await build.user("admin@example.com", [role_id])
    return {"Authorization": f"Bearer {make_token(user_id)}"}


@pytest_asyncio.fixture
async def editor(build):
    role_id = await build.role("Editor", {"Events": {"write": True}, ROLE_MANAGEMENT: {"read": True}})
    user_id = await build.user("editor@example.com", [role_id])
    return {"Authorization": f"Bearer {make_token(user_id)}"}


class TestAuthentication:

    @pytest.mark.asyncio
    async def test_missing_token(self, client):
        response = await client.get("/roles")
        assert response.status_code == 401
        assert response.json()["code"] == "unauthenticated"
        assert response.headers["WWW-Authenticate"] == "Bearer"

    @pytest.mark.asyncio
    async def test_bad_signature(self, client, build):
        response = await client.get("/roles", headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_unknown_subject(self, client):
        headers = {"Authorization": f"Bearer {make_token('ghost')}"}
        response = await client.get("/roles", headers=headers)
        assert response.status_code == 401

    def test_unset_secret_rejects_every_token(self, monkeypatch):
        token = jwt.encode({"sub": "x"}, "change-me", algorithm="HS256")
        monkeypatch.setattr(config, "JWT_SECRET", None)

        with pytest.raises(Unauthenticated):
            verify_jwt_token(token)

    @pytest.mark.asyncio
    async def test_unset_secret_is_401(self, client, build, monkeypatch):
        user_id = await build.user("someone@example.com")
        headers = {"Authorization": f"Bearer {make_token(user_id)}"}
        monkeypatch.setattr(config, "JWT_SECRET", None)

        response = await client.get("/users/me/roles", headers=headers)

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_public_endpoints(self, client):
        assert (await client.get("/health")).json() == {"status": "healthy"}


class TestRequestId:

    @pytest.mark.asyncio
    async def test_generated_id_is_echoed(self, client):
        response = await client.get("/health")
        assert response.headers.get("X-Request-ID")

    @pytest.mark.asyncio
    async def test_incoming_id_reaches_error_body(self, client):
        response = await client.get("/roles", headers={"X-Request-ID": "req-42"})
        assert response.headers["X-Request-ID"] == "req-42"
        assert response.json()["request_id"] == "req-42"


class TestGuards:

    @pytest.mark.asyncio
    async def test_admin_creates_role(self, client, build, admin):
        events = await build.feature("Events")
        payload = {"name": "Support", "feature_permissions": [{"feature_id": events, "read": True}]}

        response = await client.post("/roles", json=payload, headers=admin)

        assert response.status_code == 201
        body = response.json()
        assert body["name"] == "Support"
        assert body["feature_ids"] == [events]
        assert body["feature_permissions"][0]["permissions"] == {"read": True, "write": False, "admin": False}

    @pytest.mark.asyncio
    async def test_editor_cannot_create_role(self, client, build, editor):
        events = await build.feature("Events")
        payload = {"name": "Support", "feature_permissions": [{"feature_id": events, "read": True}]}

        response = await client.post("/roles", json=payload, headers=editor)

        assert response.status_code == 403
        assert response.json()["code"] == "permission_denied"
        assert response.json()["detail"] == "missing permission for feature"

    @pytest.mark.asyncio
    async def test_editor_can_list_roles(self, client, editor):
        response = await client.get("/roles", headers=editor)
        assert response.status_code == 200
        assert [role["name"] for role in response.json()] == ["Editor"]

    @pytest.mark.asyncio
    async def test_user_without_roles(self, client, build):
        user_id = await build.user("nobody@example.com")
        response = await client.get("/roles", headers={"Authorization": f"Bearer {make_token(user_id)}"})
        assert response.status_code == 403
        assert response.json()["code"] == "no_roles_assigned"

    @pytest.mark.asyncio
    async def test_invalid_feature_reference(self, client, admin):
        payload = {"name": "Broken", "feature_permissions": [{"feature_id": "missing", "read": True}]}
        response = await client.post("/roles", json=payload, headers=admin)
        assert response.status_code == 400
        assert response.json()["code"] == "invalid_feature"


class TestPermissionCheck:

    @pytest.mark.asyncio
    async def test_check_allowed(self, client, editor):
        response = await client.post("/permissions/check", json={"feature": "Events", "permission": "write"}, headers=editor)
        assert response.json() == {"allowed": True, "reason": None, "code": None}

    @pytest.mark.asyncio
    async def test_check_denied(self, client, editor):
        response = await client.post("/permissions/check", json={"feature": "Events", "permission": "admin"}, headers=editor)
        assert response.status_code == 200
        assert response.json()["allowed"] is False
        assert response.json()["code"] == "permission_denied"

    @pytest.mark.asyncio
    async def test_check_role_allow_list(self, client, editor):
        payload = {"feature": "Events", "permission": "write", "role_names": ["Administrator"]}
        response = await client.post("/permissions/check", json=payload, headers=editor)
        assert response.json()["code"] == "role_not_permitted"

    @pytest.mark.asyncio
    async def test_invalid_permission_name(self, client, editor):
        response = await client.post("/permissions/check", json={"feature": "Events", "permission": "delete"}, headers=editor)
        assert response.status_code == 400


class TestRoleUpdates:

    @pytest_asyncio.fixture
    async def role(self, client, build, admin):
        events = await build.feature("Events")
        banners = await build.feature("Banners")
        payload = {
            "name": "Content",
            "feature_permissions": [
                {"feature_id": events, "read": True, "write": True},
                {"feature_id": banners, "read": True},
            ],
        }
        response = await client.post("/roles", json=payload, headers=admin)
        return response.json()["id"]

    @staticmethod
    def flags(body):
        return {grant["feature_name"]: grant["permissions"] for grant in body["feature_permissions"]}

    @pytest.mark.asyncio
    async def test_patch_merges(self, client, build, admin, role):
        """Only the provided flag changes; unlisted features are untouched."""
        payload = {"feature_permissions": [{"feature_id": build.features["Events"], "admin": True}]}

        response = await client.patch(f"/roles/{role}", json=payload, headers=admin)

        assert response.status_code == 200
        flags = self.flags(response.json())
        assert flags["Events"] == {"read": True, "write": True, "admin": True}
        assert flags["Banners"] == {"read": True, "write": False, "admin": False}

    @pytest.mark.asyncio
    async def test_put_replaces(self, client, build, admin, role):
        payload = {"feature_permissions": [{"feature_id": build.features["Banners"], "write": True}]}

        response = await client.put(f"/roles/{role}/permissions", json=payload, headers=admin)

        assert response.status_code == 200
        assert self.flags(response.json()) == {"Banners": {"read": False, "write": True, "admin": False}}
        assert response.json()["feature_ids"] == [build.features["Banners"]]

    @pytest.mark.asyncio
    async def test_put_features_overwrites_listed_only(self, client, build, admin, role):
        offers = await build.feature("Offers")
        payload = {"feature_permissions": [
            {"feature_id": build.features["Banners"], "write": True},
            {"feature_id": offers, "read": False, "write": False, "admin": False},
        ]}

        response = await client.put(f"/roles/{role}/features", json=payload, headers=admin)

        assert response.status_code == 200
        flags = self.flags(response.json())
        assert flags["Events"] == {"read": True, "write": True, "admin": False}
        assert flags["Banners"] == {"read": False, "write": True, "admin": False}
        assert flags["Offers"] == {"read": False, "write": False, "admin": False}
        assert offers in response.json()["feature_ids"]

    @pytest.mark.asyncio
    async def test_resolve_by_feature_name(self, client, admin, role):
        response = await client.get(f"/permissions/roles/{role}/resolve", params={"feature": "Banners"}, headers=admin)
        assert response.json() == {"read": True, "write": False, "admin": False}

    @pytest.mark.asyncio
    async def test_resolve_without_grant(self, client, build, admin, role):
        await build.feature("Offers")
        response = await client.get(f"/permissions/roles/{role}/resolve", params={"feature": "Offers"}, headers=admin)
        assert response.status_code == 200
        assert response.json() is None

    @pytest.mark.asyncio
    async def test_resolve_unknown_feature(self, client, admin, role):
        response = await client.get(f"/permissions/roles/{role}/resolve", params={"feature": "Nope"}, headers=admin)
        assert response.status_code == 500
        assert response.json()["code"] == "unknown_feature"

    @pytest.mark.asyncio
    async def test_delete_role(self, client, admin, role):
        response = await client.delete(f"/roles/{role}", headers=admin)
        assert response.status_code == 204
        assert (await client.get(f"/roles/{role}", headers=admin)).status_code == 404


class TestStorageOutage:

    @pytest.mark.asyncio
    async def test_outage_is_503_not_403(self, client, editor, caplog):
        directory = AsyncMock()
        directory.resolve_roles.side_effect = StorageUnavailable("Permission storage is unavailable")
        app.dependency_overrides[get_engine] = lambda: AuthorizationEngine(directory, AsyncMock())

        response = await client.get("/roles", headers=editor)

        assert response.status_code == 503
        assert response.json()["code"] == "storage_unavailable"
        assert "StorageUnavailable on GET /roles" in caplog.text
