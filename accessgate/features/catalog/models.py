"""
Feature model.
"""
from sqlalchemy import String, Boolean
from sqlalchemy.orm import Mapped, mapped_column

from accessgate.core.database.base import Base, TimestampMixin, generate_ulid


def make_unique_id(name: str) -> str:
    """'Event Management' -> 'event_management'."""
    return name.lower().replace(" ", "_")


class Feature(Base, TimestampMixin):
    """
    A capability area subject to access control, e.g. "Event Management".

    Route guards refer to features by name; grants refer to them by id.
    """
    __tablename__ = "features"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)
    unique_id: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<Feature(id={self.id}, name={self.name!r})>"
