"""
Feature catalog API routes.
"""
from typing import Annotated, List
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from accessgate.core.database.engine import get_db
from accessgate.features.catalog.schemas import FeatureCreate, FeatureResponse, FeatureUpdate
from accessgate.features.catalog.service import FeatureCatalog
from accessgate.features.permissions.dependencies import FEATURE_MANAGEMENT, guard, register_route
from accessgate.features.users.dependencies import Principal


router = APIRouter()

register_route("features.list", feature=FEATURE_MANAGEMENT, permission="read")
register_route("features.create", feature=FEATURE_MANAGEMENT, permission="write")
register_route("features.update", feature=FEATURE_MANAGEMENT, permission="write")


@router.post("", response_model=FeatureResponse, status_code=status.HTTP_201_CREATED)
async def create_feature(
    payload: FeatureCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
    _principal: Annotated[Principal, Depends(guard("features.create"))],
):
    """Create a feature."""
    return await FeatureCatalog(db).create_feature(payload.name, is_active=payload.is_active)


@router.get("", response_model=List[FeatureResponse])
async def list_features(
    db: Annotated[AsyncSession, Depends(get_db)],
    _principal: Annotated[Principal, Depends(guard("features.list"))],
    skip: int = 0,
    limit: int = 100,
):
    """List features ordered by name."""
    return await FeatureCatalog(db).list_features(skip=skip, limit=limit)


@router.patch("/{feature_id}", response_model=FeatureResponse)
async def update_feature(
    feature_id: str,
    payload: FeatureUpdate,
    db: Annotated[AsyncSession, Depends(get_db)],
    _principal: Annotated[Principal, Depends(guard("features.update"))],
):
    """Rename or (de)activate a feature."""
    return await FeatureCatalog(db).update_feature(feature_id, name=payload.name, is_active=payload.is_active)
