"""
Seed script to populate default features, roles and an administrator.

Run this script after database initialization to create:
- The built-in management features plus the application features
- An Administrator role holding every flag on every feature
- The Editor example role
- An administrator user (SEED_ADMIN_EMAIL) assigned the Administrator role

Usage:
    python -m scripts.seed_permissions
"""
import asyncio
import os

from sqlalchemy.ext.asyncio import AsyncSession

from accessgate.core.database.engine import get_db, init_db
from accessgate.core.exceptions import ResourceConflict
from accessgate.features.catalog.models import Feature
from accessgate.features.catalog.service import FeatureCatalog
from accessgate.features.permissions.dependencies import BUILTIN_FEATURES
from accessgate.features.permissions.schemas import FeaturePermissionItem
from accessgate.features.roles.service import RoleService
from accessgate.features.users.service import UserService
from accessgate.utils import get_logger


log = get_logger(__name__)


APPLICATION_FEATURES = [
    "Events",
    "Banners",
    "Offers",
    "Cuisine",
    "Venues",
    "Vendors",
]

ADMIN_ROLE = "Administrator"

# role name -> {feature name: flags}
DEFAULT_ROLES = {
    "Editor": {
        "Events": {"write": True},
        "Banners": {"read": True},
    },
    "Viewer": {
        "Events": {"read": True},
        "Banners": {"read": True},
        "Offers": {"read": True},
    },
}


async def seed_features(db: AsyncSession) -> dict[str, Feature]:
    """
    Create default features.

    Returns:
        Dictionary mapping feature names to Feature objects
    """
    log.info("Creating default features...")
    catalog = FeatureCatalog(db)
    existing = {feature.name: feature for feature in await catalog.list_features(limit=1000)}

    for name in list(BUILTIN_FEATURES) + APPLICATION_FEATURES:
        if name in existing:
            log.debug(f"Feature '{name}' already exists, skipping")
            continue
        existing[name] = await catalog.create_feature(name)
        log.info(f"Created feature: {name}")

    return existing


async def seed_roles(db: AsyncSession, features: dict[str, Feature]) -> dict[str, str]:
    """
    Create default roles and their feature permissions.

    Returns:
        Dictionary mapping role names to role ids
    """
    log.info("Creating default roles...")
    service = RoleService(db)
    role_ids = {}

    definitions = {
        ADMIN_ROLE: {name: {"read": True, "write": True, "admin": True} for name in features},
        **DEFAULT_ROLES,
    }
    for role_name, grants in definitions.items():
        items = []
        for feature_name, flags in grants.items():
            if feature_name not in features:
                log.warning(f"Feature '{feature_name}' not found for role '{role_name}'")
                continue
            items.append(FeaturePermissionItem(feature_id=features[feature_name].id, **flags))

        try:
            role = await service.create_role(role_name, items, is_internal=role_name == ADMIN_ROLE)
            log.info(f"Created role '{role_name}' with {len(items)} feature permission(s)")
        except ResourceConflict:
            log.debug(f"Role '{role_name}' already exists, skipping")
            role = await service.find_by_name(role_name)
        role_ids[role_name] = role.id

    return role_ids


async def seed_admin(db: AsyncSession, admin_role_id: str) -> None:
    email = os.environ.get("SEED_ADMIN_EMAIL", "admin@example.com")
    users = UserService(db)
    try:
        user = await users.create_user(email, "Administrator")
    except ResourceConflict:
        log.info(f"Admin user {email} already exists, skipping")
        return
    await users.assign_roles(user.id, [admin_role_id])
    log.info(f"Created admin user {email} ({user.id})")


async def main():
    """Main function to seed features, roles and the administrator."""
    log.info("Starting permission seeding...")

    log.info("Initializing database tables...")
    await init_db()

    async for db in get_db():
        try:
            features = await seed_features(db)
            role_ids = await seed_roles(db, features)
            await seed_admin(db, role_ids[ADMIN_ROLE])

            log.info("Permission seeding completed successfully!")
            for role_name in role_ids:
                log.info(f"  - {role_name}")

        except Exception as e:
            log.error(f"Error seeding permissions: {e}", exc_info=True)
            await db.rollback()
            raise

        break  # Only use first session


if __name__ == "__main__":
    asyncio.run(main())
