"""Invoice asset routes."""

from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile, status

from app.core.deps import DbSession, SchoolUser, StorageDep, SuperAdmin, require_permission
from app.schemas.invoice import (
    InvoiceAssetCreate,
    InvoiceAssetResponse,
    InvoiceAssetType,
    InvoiceAssetUpdate,
)
from app.services import invoice_asset as asset_service

router = APIRouter(prefix="/invoice-assets", tags=["Invoice Assets"])


async def _get_asset_or_404(db, asset_id: UUID):
    asset = await asset_service.get_asset_by_id(db, asset_id)
    if not asset:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Asset not found",
        )
    return asset


@router.get(
    "",
    response_model=list[InvoiceAssetResponse],
    dependencies=[Depends(require_permission("templates:read"))],
)
async def list_assets(
    db: DbSession,
    current_user: SchoolUser,
    school_id: UUID | None = Query(None, description="Include this school's assets"),
    asset_type: InvoiceAssetType | None = Query(None, alias="type", description="Filter by type"),
) -> list[InvoiceAssetResponse]:
    """Global assets plus the school's own."""
    if not current_user.is_superadmin:
        school_id = current_user.school_id
    assets = await asset_service.get_assets(db, school_id, asset_type)
    return [InvoiceAssetResponse.model_validate(a) for a in assets]


@router.post("", response_model=InvoiceAssetResponse, status_code=status.HTTP_201_CREATED)
async def create_asset(
    asset_data: InvoiceAssetCreate,
    db: DbSession,
    current_user: SuperAdmin,
) -> InvoiceAssetResponse:
    """Register an asset that is already hosted at **url**."""
    asset = await asset_service.create_asset(db, asset_data)
    return InvoiceAssetResponse.model_validate(asset)


@router.post(
    "/upload",
    response_model=InvoiceAssetResponse,
    status_code=status.HTTP_201_CREATED,
)
async def upload_asset(
    db: DbSession,
    storage: StorageDep,
    current_user: SuperAdmin,
    file: UploadFile = File(...),
    asset_type: InvoiceAssetType = Form(InvoiceAssetType.LOGO, alias="type"),
    school_id: UUID | None = Form(None),
) -> InvoiceAssetResponse:
    """
    Upload an image and record it as an asset.

    - Validates file type and size
    - Leave **school_id** empty for a global asset
    """
    content = await file.read()
    asset = await asset_service.upload_asset(
        db,
        storage,
        content,
        file.filename,
        file.content_type,
        asset_type,
        school_id,
    )
    return InvoiceAssetResponse.model_validate(asset)


@router.get(
    "/{asset_id}",
    response_model=InvoiceAssetResponse,
    dependencies=[Depends(require_permission("templates:read"))],
)
async def get_asset(
    asset_id: UUID,
    db: DbSession,
    current_user: SchoolUser,
) -> InvoiceAssetResponse:
    """Get an invoice asset by ID."""
    asset = await _get_asset_or_404(db, asset_id)
    if not current_user.is_superadmin and asset.school_id not in (None, current_user.school_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Asset not found",
        )
    return InvoiceAssetResponse.model_validate(asset)


@router.put("/{asset_id}", response_model=InvoiceAssetResponse)
async def update_asset(
    asset_id: UUID,
    asset_data: InvoiceAssetUpdate,
    db: DbSession,
    current_user: SuperAdmin,
) -> InvoiceAssetResponse:
    """Update an asset's name, type or URL."""
    asset = await _get_asset_or_404(db, asset_id)
    updated = await asset_service.update_asset(db, asset, asset_data)
    return InvoiceAssetResponse.model_validate(updated)


@router.delete("/{asset_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_asset(
    asset_id: UUID,
    db: DbSession,
    current_user: SuperAdmin,
) -> None:
    """Delete an invoice asset."""
    asset = await _get_asset_or_404(db, asset_id)
    await asset_service.delete_asset(db, asset)
