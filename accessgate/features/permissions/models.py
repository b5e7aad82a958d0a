"""
Feature permission grants: (role, feature) -> read / write / admin.

The three flags are stored independently. Nothing here treats `admin` as a
superset of `read` or `write`.
"""
from sqlalchemy import String, Boolean, ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from accessgate.core.database.base import Base, TimestampMixin, generate_ulid


PERMISSION_FIELDS = ("read", "write", "admin")


class FeaturePermission(Base, TimestampMixin):
    """
    One grant per (role_id, feature_id) pair.

    Identity columns never change after insert; resubmitting a pair only
    rewrites the flags (and bumps updated_at).
    """
    __tablename__ = "role_feature_permissions"
    __table_args__ = (
        UniqueConstraint("role_id", "feature_id", name="uq_role_feature_permission"),
    )

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)

    role_id: Mapped[str] = mapped_column(
        String(26),
        ForeignKey("roles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    feature_id: Mapped[str] = mapped_column(
        String(26),
        ForeignKey("features.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    write: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    admin: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    def allows(self, permission: str) -> bool:
        """True when the flag named by `permission` is set on this grant."""
        if permission not in PERMISSION_FIELDS:
            return False
        return bool(getattr(self, permission))

    def __repr__(self) -> str:
        return (
            f"<FeaturePermission(role_id={self.role_id}, feature_id={self.feature_id}, "
            f"read={self.read}, write={self.write}, admin={self.admin})>"
        )
