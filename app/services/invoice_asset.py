"""Invoice asset service - logos, signatures and other invoice images."""

from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotFoundError
from app.core.logging import get_logger
from app.models.invoice import InvoiceAsset
from app.models.school import School
from app.schemas.invoice import InvoiceAssetCreate, InvoiceAssetType, InvoiceAssetUpdate
from app.services.storage import Storage, validate_image_upload

logger = get_logger(__name__)


async def _ensure_school_exists(db: AsyncSession, school_id: UUID | None) -> None:
    if school_id and await db.get(School, school_id) is None:
        raise NotFoundError("School not found")


async def get_asset_by_id(db: AsyncSession, asset_id: UUID) -> InvoiceAsset | None:
    """Get asset by ID."""
    result = await db.execute(select(InvoiceAsset).where(InvoiceAsset.id == asset_id))
    return result.scalar_one_or_none()


async def get_assets(
    db: AsyncSession,
    school_id: UUID | None = None,
    asset_type: InvoiceAssetType | None = None,
) -> list[InvoiceAsset]:
    """Global assets, plus the school's own when ``school_id`` is given."""
    query = select(InvoiceAsset)
    if school_id:
        query = query.where(
            or_(InvoiceAsset.school_id == None, InvoiceAsset.school_id == school_id)
        )
    else:
        query = query.where(InvoiceAsset.school_id == None)
    if asset_type is not None:
        query = query.where(InvoiceAsset.type == asset_type)

    result = await db.execute(query.order_by(InvoiceAsset.created_at.desc()))
    return list(result.scalars().all())


async def create_asset(db: AsyncSession, asset_data: InvoiceAssetCreate) -> InvoiceAsset:
    """Register an asset hosted elsewhere."""
    await _ensure_school_exists(db, asset_data.school_id)

    asset = InvoiceAsset(**asset_data.model_dump())
    db.add(asset)
    await db.commit()
    await db.refresh(asset)
    return asset


async def upload_asset(
    db: AsyncSession,
    storage: Storage,
    content: bytes,
    filename: str | None,
    content_type: str | None,
    asset_type: InvoiceAssetType,
    school_id: UUID | None = None,
) -> InvoiceAsset:
    """Validate and store an image, then record it as an asset."""
    validate_image_upload(content, content_type)
    await _ensure_school_exists(db, school_id)

    uploaded = await storage.upload(content, filename, content_type, folder="invoice-assets")
    asset = InvoiceAsset(
        school_id=school_id,
        name=filename or uploaded["filename"],
        type=asset_type,
        url=uploaded["url"],
        size=len(content),
        mime_type=content_type,
    )
    db.add(asset)
    await db.commit()
    await db.refresh(asset)

    logger.info(
        "Invoice asset uploaded",
        extra={"asset_id": str(asset.id), "type": asset_type.value, "size": len(content)},
    )
    return asset


async def update_asset(
    db: AsyncSession,
    asset: InvoiceAsset,
    asset_data: InvoiceAssetUpdate,
) -> InvoiceAsset:
    """Rename, retype or repoint an asset."""
    for field, value in asset_data.model_dump(exclude_unset=True).items():
        if value is not None:
            setattr(asset, field, value)

    await db.commit()
    await db.refresh(asset)
    return asset


async def delete_asset(db: AsyncSession, asset: InvoiceAsset) -> None:
    """Delete an asset record. The stored file is left in place."""
    await db.delete(asset)
    await db.commit()
