"""School entitlement routes - features granted to each school."""

from typing import Literal
from uuid import UUID

from fastapi import APIRouter, HTTPException, Query, status

from app.core.deps import DbSession, SchoolUser, SuperAdmin
from app.core.permissions import has_permission
from app.schemas.feature import (
    BulkAssignRequest,
    BulkAssignResponse,
    FeatureSetupResponse,
    FeatureSetupUpdate,
    SchoolFeatureBulk,
    SchoolFeatureMenu,
    SchoolFeatureResponse,
    SchoolFeatureToggle,
)
from app.services import entitlement as entitlement_service
from app.services import feature as feature_service

router = APIRouter(prefix="/schools", tags=["School Features"])


def _ensure_can_read(current_user, school_id: UUID) -> None:
    """Superadmins read any school; others only their own."""
    if current_user.is_superadmin:
        return
    if current_user.school_id != school_id or not has_permission(
        current_user.role, "entitlements:read"
    ):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="School not found",
        )


@router.post("/features/bulk-assign", response_model=BulkAssignResponse)
async def bulk_assign_features(
    assign_data: BulkAssignRequest,
    db: DbSession,
    current_user: SuperAdmin,
) -> BulkAssignResponse:
    """Enable every listed feature for every listed school."""
    count = await entitlement_service.bulk_assign_features(
        db, assign_data.school_ids, assign_data.feature_ids
    )
    return BulkAssignResponse(assigned_count=count)


@router.get("/{school_id}/features", response_model=list[SchoolFeatureResponse])
async def list_school_features(
    school_id: UUID,
    db: DbSession,
    current_user: SchoolUser,
) -> list[SchoolFeatureResponse]:
    """All features granted to a school, enabled or not."""
    _ensure_can_read(current_user, school_id)
    rows = await entitlement_service.get_school_features(db, school_id)
    return [SchoolFeatureResponse.model_validate(r) for r in rows]


@router.post("/{school_id}/features", response_model=SchoolFeatureResponse)
async def toggle_school_feature(
    school_id: UUID,
    toggle_data: SchoolFeatureToggle,
    db: DbSession,
    current_user: SuperAdmin,
) -> SchoolFeatureResponse:
    """Enable or disable a feature for a school."""
    row = await entitlement_service.toggle_feature(
        db, school_id, toggle_data.feature_id, toggle_data.enabled
    )
    return SchoolFeatureResponse.model_validate(row)


@router.get("/{school_id}/enabled-features", response_model=list[SchoolFeatureResponse])
async def list_enabled_school_features(
    school_id: UUID,
    db: DbSession,
    current_user: SchoolUser,
) -> list[SchoolFeatureResponse]:
    """Features currently enabled for a school (the ones it can be invoiced for)."""
    _ensure_can_read(current_user, school_id)
    rows = await entitlement_service.get_enabled_school_features(db, school_id)
    return [SchoolFeatureResponse.model_validate(r) for r in rows]


@router.post("/{school_id}/features/bulk", response_model=list[SchoolFeatureResponse])
async def enable_school_features(
    school_id: UUID,
    bulk_data: SchoolFeatureBulk,
    db: DbSession,
    current_user: SuperAdmin,
) -> list[SchoolFeatureResponse]:
    """Enable several features for one school."""
    rows = await entitlement_service.enable_features(db, school_id, bulk_data.feature_ids)
    return [SchoolFeatureResponse.model_validate(r) for r in rows]


@router.post(
    "/{school_id}/features/{key}/{action}",
    response_model=SchoolFeatureResponse,
)
async def toggle_school_feature_by_key(
    school_id: UUID,
    key: str,
    action: Literal["enable", "disable"],
    db: DbSession,
    current_user: SuperAdmin,
) -> SchoolFeatureResponse:
    """Enable or disable a feature for a school by feature key."""
    feature = await feature_service.get_feature_by_key(db, key)
    if not feature:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Feature not found",
        )

    row = await entitlement_service.toggle_feature(
        db, school_id, feature.id, action == "enable"
    )
    return SchoolFeatureResponse.model_validate(row)


@router.get("/{school_id}/features-with-menu", response_model=list[SchoolFeatureMenu])
async def list_school_features_with_menu(
    school_id: UUID,
    db: DbSession,
    current_user: SchoolUser,
) -> list[SchoolFeatureMenu]:
    """Enabled features of a school with their effective menu links."""
    _ensure_can_read(current_user, school_id)
    menu = await entitlement_service.get_school_features_with_menu(db, school_id)
    return [SchoolFeatureMenu.model_validate(m) for m in menu]


@router.get("/{school_id}/feature-setup", response_model=list[FeatureSetupResponse])
async def get_school_feature_setup(
    school_id: UUID,
    db: DbSession,
    current_user: SuperAdmin,
    feature_id: UUID | None = Query(None, description="Limit to one feature"),
) -> list[FeatureSetupResponse]:
    """Stored per-school menu link overrides."""
    setups = await entitlement_service.get_school_feature_setup(db, school_id, feature_id)
    return [FeatureSetupResponse.model_validate(s) for s in setups]


@router.put("/{school_id}/feature-setup", response_model=FeatureSetupResponse)
async def update_school_feature_setup(
    school_id: UUID,
    setup_data: FeatureSetupUpdate,
    db: DbSession,
    current_user: SuperAdmin,
) -> FeatureSetupResponse:
    """Override the menu links of a granted feature for one school."""
    setup = await entitlement_service.update_school_feature_setup(
        db, school_id, setup_data.feature_id, setup_data.menu_links
    )
    return FeatureSetupResponse.model_validate(setup)
