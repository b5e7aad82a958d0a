"""
User model with ULID primary keys and ordered role assignments.
"""
from datetime import datetime
from sqlalchemy import String, Boolean, Integer, ForeignKey, Table, Column, DateTime
from sqlalchemy.orm import Mapped, mapped_column

from accessgate.core.database.base import Base, TimestampMixin, generate_ulid


# User-Role relationship; `position` is the order the directory returns roles in
user_roles = Table(
    "user_roles",
    Base.metadata,
    Column("user_id", String(26), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
    Column("role_id", String(26), ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True),
    Column("position", Integer, nullable=False, default=0),
    Column("assigned_at", DateTime(timezone=True), nullable=False, default=datetime.now),
)


class User(Base, TimestampMixin):
    """
    User model representing authenticated principals.

    Authentication happens upstream; this table only records who the
    principal is and which roles they hold.
    """
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)

    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email!r})>"
