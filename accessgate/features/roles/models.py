"""
Role model and its feature references.

A role lists the features it covers (`role_features`); the actual
read/write/admin flags live in `role_feature_permissions`.
"""
from sqlalchemy import String, Boolean, ForeignKey, Table, Column
from sqlalchemy.orm import Mapped, mapped_column, relationship

from accessgate.core.database.base import Base, TimestampMixin, generate_ulid
from accessgate.features.catalog.models import Feature


# ============================================================================
# Association Tables
# ============================================================================

role_features = Table(
    "role_features",
    Base.metadata,
    Column("role_id", String(26), ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True),
    Column("feature_id", String(26), ForeignKey("features.id", ondelete="CASCADE"), primary_key=True),
)


# ============================================================================
# Core Models
# ============================================================================

class Role(Base, TimestampMixin):
    """
    Role model for grouping feature grants.

    Examples: Administrator, Editor, Support
    """
    __tablename__ = "roles"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    name: Mapped[str] = mapped_column(String(50), unique=True, nullable=False, index=True)

    # Internal roles are provisioned by the system rather than by an administrator
    is_internal: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    features: Mapped[list[Feature]] = relationship(
        Feature,
        secondary=role_features,
        order_by=Feature.name,
        lazy="selectin",
    )

    @property
    def feature_ids(self) -> list[str]:
        return [feature.id for feature in self.features]

    def __repr__(self) -> str:
        return f"<Role(id={self.id}, name={self.name!r})>"
