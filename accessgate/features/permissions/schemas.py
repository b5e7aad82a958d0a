"""
Pydantic schemas for feature permissions.

Request and response models for grants, administration payloads, route
requirements and permission checks.
"""
from datetime import datetime
from typing import List, Literal, Optional, Tuple
from pydantic import BaseModel, Field, ConfigDict, field_validator


Action = Literal["read", "write", "admin"]


# ============================================================================
# Grant Schemas
# ============================================================================

class PermissionTriple(BaseModel):
    """The effective flags of one grant."""
    read: bool = False
    write: bool = False
    admin: bool = False

    model_config = ConfigDict(from_attributes=True, frozen=True)

    def allows(self, permission: str) -> bool:
        return bool(getattr(self, permission, False))


class FeaturePermissionItem(BaseModel):
    """
    One feature entry of an administration payload.

    Flags left out (None) mean "not provided": the additive update keeps the
    stored value, every other path treats them as false.
    """
    feature_id: str = Field(..., min_length=1, description="Feature ID")
    read: Optional[bool] = None
    write: Optional[bool] = None
    admin: Optional[bool] = None

    def is_empty(self) -> bool:
        """True when no flag is set to true."""
        return not (self.read or self.write or self.admin)


class FeaturePermissionResponse(BaseModel):
    """Schema for a stored grant."""
    id: str
    role_id: str
    feature_id: str
    read: bool
    write: bool
    admin: bool
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class GrantWithFeature(BaseModel):
    """A grant joined with the name of its feature, for display."""
    feature_id: str
    feature_name: Optional[str] = None
    permissions: PermissionTriple


# ============================================================================
# Route Requirement
# ============================================================================

class AccessRequirement(BaseModel):
    """
    What an endpoint demands of its caller.

    Leaving `feature` or `permission` unset makes the endpoint ungated.
    """
    feature: Optional[str] = None
    permission: Optional[Action] = None
    role_names: Tuple[str, ...] = ()

    model_config = ConfigDict(frozen=True)

    @property
    def is_gated(self) -> bool:
        return bool(self.feature) and bool(self.permission)


# ============================================================================
# Permission Check Schemas
# ============================================================================

class PermissionCheckRequest(BaseModel):
    """Schema for checking whether the current principal passes a requirement."""
    feature: Optional[str] = Field(None, description="Feature name")
    permission: Optional[Action] = Field(None, description="read, write or admin")
    role_names: List[str] = Field(default_factory=list, description="Optional role-name allow-list")

    @field_validator("role_names")
    @classmethod
    def strip_blank_roles(cls, v: List[str]) -> List[str]:
        return [name for name in v if name and name.strip()]

    def to_requirement(self) -> AccessRequirement:
        return AccessRequirement(
            feature=self.feature,
            permission=self.permission,
            role_names=tuple(self.role_names),
        )


class PermissionCheckResponse(BaseModel):
    """Schema for permission check response."""
    allowed: bool
    reason: Optional[str] = None
    code: Optional[str] = None
