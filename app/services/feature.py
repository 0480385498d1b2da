"""Feature catalog service."""

import re
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ConflictError, ValidationError
from app.core.logging import get_logger
from app.models.feature import Feature
from app.schemas.feature import FeatureCreate, FeatureUpdate, MenuLink
from app.schemas.validators import FEATURE_KEY_PATTERN

logger = get_logger(__name__)


def slugify_key(name: str) -> str:
    """Derive a feature key from its display name: ``Result Checker`` -> ``result_checker``."""
    key = re.sub(r"\s+", "_", name.strip().lower())
    return re.sub(r"[^a-z0-9_]", "", key)


def normalize_menu_links(links: list[MenuLink] | list[dict]) -> list[dict]:
    """Coerce links to plain dicts with icon/enabled defaults applied."""
    return [
        (link if isinstance(link, MenuLink) else MenuLink.model_validate(link)).model_dump()
        for link in links
    ]


async def get_feature_by_id(db: AsyncSession, feature_id: UUID) -> Feature | None:
    """Get feature by ID."""
    result = await db.execute(select(Feature).where(Feature.id == feature_id))
    return result.scalar_one_or_none()


async def get_feature_by_key(db: AsyncSession, key: str) -> Feature | None:
    """Get feature by its unique key."""
    result = await db.execute(select(Feature).where(Feature.key == key))
    return result.scalar_one_or_none()


async def get_features_by_ids(db: AsyncSession, feature_ids: list[UUID]) -> dict[UUID, Feature]:
    """Load several features at once, keyed by id."""
    if not feature_ids:
        return {}
    result = await db.execute(select(Feature).where(Feature.id.in_(set(feature_ids))))
    return {feature.id: feature for feature in result.scalars().all()}


async def list_features(
    db: AsyncSession,
    *,
    include_inactive: bool = False,
    category: str | None = None,
) -> list[Feature]:
    """List catalog features ordered by name."""
    query = select(Feature)
    if not include_inactive:
        query = query.where(Feature.is_active == True)
    if category:
        query = query.where(Feature.category == category)
    result = await db.execute(query.order_by(Feature.name))
    return list(result.scalars().all())


async def create_feature(db: AsyncSession, feature_data: FeatureCreate) -> Feature:
    """Create a catalog feature, deriving the key from the name if absent."""
    key = feature_data.key or slugify_key(feature_data.name)
    if not key or not FEATURE_KEY_PATTERN.match(key):
        raise ValidationError(
            "Invalid feature key",
            errors=[{"field": "key", "message": "Feature key must match ^[a-z0-9_]+$"}],
        )

    if await get_feature_by_key(db, key):
        raise ConflictError(f"Feature with key '{key}' already exists")

    feature = Feature(
        key=key,
        name=feature_data.name,
        description=feature_data.description,
        price=feature_data.price,
        pricing_type=feature_data.pricing_type,
        category=feature_data.category,
        is_core=feature_data.is_core,
        requires_date_range=feature_data.requires_date_range,
        menu_links=normalize_menu_links(feature_data.menu_links),
        is_active=True,
    )
    db.add(feature)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError(f"Feature with key '{key}' already exists")
    await db.refresh(feature)

    logger.info("Feature created", extra={"feature_id": str(feature.id), "key": key})
    return feature


async def update_feature(
    db: AsyncSession,
    feature: Feature,
    feature_data: FeatureUpdate,
) -> Feature:
    """Update a feature. The key is never changed."""
    update_data = feature_data.model_dump(exclude_unset=True)

    for field, value in update_data.items():
        if value is None and field not in ("description",):
            continue
        setattr(feature, field, value)

    await db.commit()
    await db.refresh(feature)

    return feature


async def update_feature_menu_links(
    db: AsyncSession,
    feature: Feature,
    links: list[MenuLink],
) -> Feature:
    """Replace the default menu links of a feature."""
    feature.menu_links = normalize_menu_links(links)
    await db.commit()
    await db.refresh(feature)
    return feature


async def deactivate_feature(db: AsyncSession, feature: Feature) -> Feature:
    """Soft delete a feature. Existing entitlements are left alone."""
    feature.is_active = False
    await db.commit()
    await db.refresh(feature)
    logger.info("Feature deactivated", extra={"feature_id": str(feature.id), "key": feature.key})
    return feature
