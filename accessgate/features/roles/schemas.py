"""
Pydantic schemas for role administration.
"""
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field, ConfigDict

from accessgate.features.permissions.schemas import FeaturePermissionItem, GrantWithFeature


class RoleCreate(BaseModel):
    """Schema for creating a role together with its feature permissions."""
    name: str = Field(..., min_length=1, max_length=50, description="Unique role name")
    feature_permissions: List[FeaturePermissionItem] = Field(..., min_length=1)


class RoleUpdate(BaseModel):
    """
    Additive role update.

    Listed features are merged into the role; features not listed keep
    their current grants.
    """
    name: Optional[str] = Field(None, min_length=1, max_length=50)
    feature_permissions: Optional[List[FeaturePermissionItem]] = None


class RolePermissionsReplace(BaseModel):
    """Destructive update: the role ends up with exactly these grants."""
    feature_permissions: List[FeaturePermissionItem] = Field(default_factory=list)


class RoleFeatureAssignment(BaseModel):
    """Per-feature overwrite: every flag of each listed feature is set as given."""
    feature_permissions: List[FeaturePermissionItem] = Field(..., min_length=1)


class RoleResponse(BaseModel):
    """Schema for role response."""
    id: str
    name: str
    is_internal: bool
    feature_ids: List[str] = []
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class RoleWithPermissions(RoleResponse):
    """Schema for role with its grants."""
    feature_permissions: List[GrantWithFeature] = []


class MessageResponse(BaseModel):
    message: str
