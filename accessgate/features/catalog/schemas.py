"""
Pydantic schemas for the feature catalog.
"""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field, ConfigDict


class FeatureCreate(BaseModel):
    """Schema for creating a feature."""
    name: str = Field(..., min_length=1, max_length=100, description="Feature name (e.g., 'Event Management')")
    is_active: bool = Field(True, description="Whether the feature is active")


class FeatureUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    is_active: Optional[bool] = None


class FeatureResponse(BaseModel):
    """Schema for feature response."""
    id: str
    name: str
    unique_id: str
    is_active: bool
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)
