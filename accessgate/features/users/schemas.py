"""
User schemas for API requests and responses.
"""
from datetime import datetime
from typing import List
from pydantic import BaseModel, EmailStr, Field, ConfigDict

from accessgate.features.users.directory import RoleSnapshot


class UserCreate(BaseModel):
    """Schema for registering a principal."""
    email: EmailStr
    name: str = Field(..., min_length=1, max_length=255)


class UserResponse(BaseModel):
    """Schema for user response."""
    id: str
    email: str
    name: str
    is_active: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class RoleAssignment(BaseModel):
    """Ordered role ids; the first entry is evaluated first."""
    role_ids: List[str] = Field(default_factory=list)


class UserRolesResponse(BaseModel):
    user_id: str
    roles: List[RoleSnapshot] = []
