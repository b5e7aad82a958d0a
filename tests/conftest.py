"""Shared fixtures: an in-memory database and small builders for features, roles and users."""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("JWT_SECRET", "test-secret")

import jwt
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from accessgate.core import config
from accessgate.core.database.engine import init_db
from accessgate.features.catalog.service import FeatureCatalog
from accessgate.features.permissions.schemas import FeaturePermissionItem
from accessgate.features.permissions.store import PermissionStore
from accessgate.features.roles.service import RoleService
from accessgate.features.users.service import UserService


@pytest_asyncio.fixture
async def db_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def engine(db_engine):
    return db_engine


@pytest_asyncio.fixture
async def db(db_engine):
    factory = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)
    async with factory() as session:
        yield session


@pytest.fixture
def store(db):
    return PermissionStore(db)


class Builder:
    """Creates catalog entries, roles and users through the real services."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.features = {}

    async def feature(self, name: str) -> str:
        if name not in self.features:
            feature = await FeatureCatalog(self.db).create_feature(name)
            self.features[name] = feature.id
        return self.features[name]

    async def role(self, name: str, grants: dict) -> str:
        """`grants` maps feature name -> dict of flags, e.g. {"Events": {"write": True}}."""
        items = [
            FeaturePermissionItem(feature_id=await self.feature(feature_name), **flags)
            for feature_name, flags in grants.items()
        ]
        role = await RoleService(self.db).create_role(name, items)
        return role.id

    async def user(self, email: str, role_ids=()) -> str:
        service = UserService(self.db)
        user = await service.create_user(email, email.split("@")[0])
        await service.assign_roles(user.id, list(role_ids))
        return user.id


@pytest_asyncio.fixture
async def build(db):
    return Builder(db)


def make_token(user_id: str) -> str:
    return jwt.encode({"sub": user_id}, config.JWT_SECRET, algorithm=config.JWT_ALGORITHM)
