"""Feature catalog routes."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.core.deps import DbSession, SchoolUser, SuperAdmin, require_permission
from app.schemas.feature import (
    FeatureCreate,
    FeatureMenuLinksUpdate,
    FeatureResponse,
    FeatureUpdate,
)
from app.services import feature as feature_service

router = APIRouter(prefix="/features", tags=["Features"])


async def _get_feature_or_404(db, feature_id: UUID):
    feature = await feature_service.get_feature_by_id(db, feature_id)
    if not feature:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Feature not found",
        )
    return feature


@router.get(
    "",
    response_model=list[FeatureResponse],
    dependencies=[Depends(require_permission("features:read"))],
)
async def list_features(
    db: DbSession,
    current_user: SchoolUser,
    include_inactive: bool = Query(False, description="Include deactivated features"),
    category: str | None = Query(None, description="Filter by category"),
) -> list[FeatureResponse]:
    """
    List catalog features ordered by name.

    - Deactivated features are only visible to superadmins
    """
    features = await feature_service.list_features(
        db,
        include_inactive=include_inactive and current_user.is_superadmin,
        category=category,
    )
    return [FeatureResponse.model_validate(f) for f in features]


@router.post("", response_model=FeatureResponse, status_code=status.HTTP_201_CREATED)
async def create_feature(
    feature_data: FeatureCreate,
    db: DbSession,
    current_user: SuperAdmin,
) -> FeatureResponse:
    """
    Create a catalog feature.

    - The key is derived from the name when not given
    - Only SUPERADMIN can manage the catalog
    """
    feature = await feature_service.create_feature(db, feature_data)
    return FeatureResponse.model_validate(feature)


@router.get(
    "/{feature_id}",
    response_model=FeatureResponse,
    dependencies=[Depends(require_permission("features:read"))],
)
async def get_feature(
    feature_id: UUID,
    db: DbSession,
    current_user: SchoolUser,
) -> FeatureResponse:
    """Get a feature by ID."""
    feature = await _get_feature_or_404(db, feature_id)
    return FeatureResponse.model_validate(feature)


@router.patch("/{feature_id}", response_model=FeatureResponse)
async def update_feature(
    feature_id: UUID,
    feature_data: FeatureUpdate,
    db: DbSession,
    current_user: SuperAdmin,
) -> FeatureResponse:
    """Update a feature. The key cannot be changed."""
    feature = await _get_feature_or_404(db, feature_id)
    updated = await feature_service.update_feature(db, feature, feature_data)
    return FeatureResponse.model_validate(updated)


@router.put("/{feature_id}/menu-links", response_model=FeatureResponse)
async def update_feature_menu_links(
    feature_id: UUID,
    links_data: FeatureMenuLinksUpdate,
    db: DbSession,
    current_user: SuperAdmin,
) -> FeatureResponse:
    """Replace the default menu links of a feature."""
    feature = await _get_feature_or_404(db, feature_id)
    updated = await feature_service.update_feature_menu_links(db, feature, links_data.menu_links)
    return FeatureResponse.model_validate(updated)


@router.delete("/{feature_id}", response_model=FeatureResponse)
async def deactivate_feature(
    feature_id: UUID,
    db: DbSession,
    current_user: SuperAdmin,
) -> FeatureResponse:
    """
    Deactivate a feature (soft delete).

    - Schools keep their entitlement rows
    """
    feature = await _get_feature_or_404(db, feature_id)
    updated = await feature_service.deactivate_feature(db, feature)
    return FeatureResponse.model_validate(updated)
