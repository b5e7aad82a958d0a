"""
User bookkeeping needed by the directory: creating users and assigning roles.
"""
from typing import List, Optional

from sqlalchemy import select, delete, insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from accessgate.core.database.errors import storage_errors
from accessgate.core.exceptions import ResourceConflict, ResourceNotFound
from accessgate.features.roles.models import Role
from accessgate.features.users.models import User, user_roles
from accessgate.utils import get_logger


log = get_logger(__name__)


class UserService:

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_user(self, user_id: str) -> Optional[User]:
        with storage_errors("get_user"):
            result = await self.db.execute(select(User).where(User.id == user_id))
            return result.scalar_one_or_none()

    async def create_user(self, email: str, name: str) -> User:
        user = User(email=email, name=name)
        self.db.add(user)
        with storage_errors("create_user"):
            try:
                await self.db.commit()
            except IntegrityError:
                await self.db.rollback()
                raise ResourceConflict("User with this email already exists")
            await self.db.refresh(user)
        log.info("Created user %s", user.id)
        return user

    async def assign_roles(self, user_id: str, role_ids: List[str]) -> None:
        """
        Replace the user's role assignments with `role_ids`, in that order.

        Duplicate ids keep their first position.
        """
        if await self.get_user(user_id) is None:
            raise ResourceNotFound("User not found")

        ordered = list(dict.fromkeys(role_ids))
        with storage_errors("assign_roles"):
            if ordered:
                result = await self.db.execute(select(Role.id).where(Role.id.in_(ordered)))
                missing = set(ordered) - set(result.scalars().all())
                if missing:
                    raise ResourceNotFound(f"Role(s) not found: {', '.join(sorted(missing))}")

            await self.db.execute(delete(user_roles).where(user_roles.c.user_id == user_id))
            if ordered:
                await self.db.execute(
                    insert(user_roles),
                    [
                        {"user_id": user_id, "role_id": role_id, "position": position}
                        for position, role_id in enumerate(ordered)
                    ],
                )
            await self.db.commit()
        log.info("Assigned roles %s to user %s", ordered, user_id)
