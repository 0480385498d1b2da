"""School entitlement service - which features each school has."""

from uuid import UUID, uuid4

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.database import upsert_statement
from app.core.exceptions import NotFoundError
from app.core.logging import get_logger
from app.models.feature import Feature, SchoolFeature, SchoolFeatureSetup
from app.models.school import School
from app.services.feature import normalize_menu_links

logger = get_logger(__name__)


async def _ensure_schools_exist(db: AsyncSession, school_ids: list[UUID]) -> None:
    wanted = set(school_ids)
    result = await db.execute(select(School.id).where(School.id.in_(wanted)))
    missing = wanted - set(result.scalars().all())
    if missing:
        raise NotFoundError(f"School not found: {', '.join(sorted(str(m) for m in missing))}")


async def _ensure_features_exist(db: AsyncSession, feature_ids: list[UUID]) -> None:
    wanted = set(feature_ids)
    result = await db.execute(select(Feature.id).where(Feature.id.in_(wanted)))
    missing = wanted - set(result.scalars().all())
    if missing:
        raise NotFoundError(f"Feature not found: {', '.join(sorted(str(m) for m in missing))}")


async def get_school_feature(
    db: AsyncSession,
    school_id: UUID,
    feature_id: UUID,
) -> SchoolFeature | None:
    """Get one entitlement row with its feature loaded."""
    result = await db.execute(
        select(SchoolFeature)
        .where(
            SchoolFeature.school_id == school_id,
            SchoolFeature.feature_id == feature_id,
        )
        .options(selectinload(SchoolFeature.feature))
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_school_features(db: AsyncSession, school_id: UUID) -> list[SchoolFeature]:
    """All entitlement rows of a school, enabled or not, with feature detail."""
    result = await db.execute(
        select(SchoolFeature)
        .join(Feature, Feature.id == SchoolFeature.feature_id)
        .where(SchoolFeature.school_id == school_id)
        .options(selectinload(SchoolFeature.feature))
        .order_by(Feature.name)
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


async def get_enabled_school_features(db: AsyncSession, school_id: UUID) -> list[SchoolFeature]:
    """Enabled entitlements only. This is what invoices may bill for."""
    result = await db.execute(
        select(SchoolFeature)
        .join(Feature, Feature.id == SchoolFeature.feature_id)
        .where(
            SchoolFeature.school_id == school_id,
            SchoolFeature.enabled == True,
        )
        .options(selectinload(SchoolFeature.feature))
        .order_by(Feature.name)
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


async def get_enabled_feature_ids(db: AsyncSession, school_id: UUID) -> set[UUID]:
    """Ids of the features currently enabled for a school."""
    result = await db.execute(
        select(SchoolFeature.feature_id).where(
            SchoolFeature.school_id == school_id,
            SchoolFeature.enabled == True,
        )
    )
    return set(result.scalars().all())


async def is_feature_enabled(db: AsyncSession, school_id: UUID, key: str) -> bool:
    """Check whether the feature with ``key`` is enabled for the school."""
    result = await db.execute(
        select(func.count())
        .select_from(SchoolFeature)
        .join(Feature, Feature.id == SchoolFeature.feature_id)
        .where(
            SchoolFeature.school_id == school_id,
            SchoolFeature.enabled == True,
            Feature.key == key,
            Feature.is_active == True,
        )
    )
    return (result.scalar() or 0) > 0


async def upsert_entitlements(
    db: AsyncSession,
    pairs: list[tuple[UUID, UUID]],
    enabled: bool,
) -> None:
    """Insert or update entitlement rows on (school_id, feature_id). Does not commit."""
    stmt = upsert_statement(db, SchoolFeature.__table__)
    stmt = stmt.values(
        [
            {
                "id": uuid4(),
                "school_id": school_id,
                "feature_id": feature_id,
                "enabled": enabled,
            }
            for school_id, feature_id in pairs
        ]
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=["school_id", "feature_id"],
        set_={"enabled": stmt.excluded.enabled, "updated_at": func.now()},
    )
    await db.execute(stmt)


async def toggle_feature(
    db: AsyncSession,
    school_id: UUID,
    feature_id: UUID,
    enabled: bool,
) -> SchoolFeature:
    """Enable or disable a feature for a school. Idempotent."""
    await _ensure_schools_exist(db, [school_id])
    await _ensure_features_exist(db, [feature_id])

    await upsert_entitlements(db, [(school_id, feature_id)], enabled)
    await db.commit()

    logger.info(
        "Feature entitlement toggled",
        extra={"school_id": str(school_id), "feature_id": str(feature_id), "enabled": enabled},
    )
    return await get_school_feature(db, school_id, feature_id)


async def enable_features(
    db: AsyncSession,
    school_id: UUID,
    feature_ids: list[UUID],
) -> list[SchoolFeature]:
    """Enable several features for one school."""
    await bulk_assign_features(db, [school_id], feature_ids)
    return await get_school_features(db, school_id)


async def bulk_assign_features(
    db: AsyncSession,
    school_ids: list[UUID],
    feature_ids: list[UUID],
) -> int:
    """Enable every feature for every school. Returns the number of pairs."""
    school_ids = list(dict.fromkeys(school_ids))
    feature_ids = list(dict.fromkeys(feature_ids))
    await _ensure_schools_exist(db, school_ids)
    await _ensure_features_exist(db, feature_ids)

    pairs = [(school_id, feature_id) for school_id in school_ids for feature_id in feature_ids]
    if pairs:
        await upsert_entitlements(db, pairs, True)
        await db.commit()

    logger.info(
        "Features bulk assigned",
        extra={"schools": len(school_ids), "features": len(feature_ids), "pairs": len(pairs)},
    )
    return len(pairs)


# ============== Per-school menu setup ==============


async def get_school_feature_setup(
    db: AsyncSession,
    school_id: UUID,
    feature_id: UUID | None = None,
) -> list[SchoolFeatureSetup]:
    """Stored menu link overrides of a school, optionally for one feature."""
    query = select(SchoolFeatureSetup).where(SchoolFeatureSetup.school_id == school_id)
    if feature_id:
        query = query.where(SchoolFeatureSetup.feature_id == feature_id)
    result = await db.execute(query.execution_options(populate_existing=True))
    return list(result.scalars().all())


async def update_school_feature_setup(
    db: AsyncSession,
    school_id: UUID,
    feature_id: UUID,
    menu_links: list,
) -> SchoolFeatureSetup:
    """Store a school's menu links for a feature it has been granted."""
    if await get_school_feature(db, school_id, feature_id) is None:
        raise NotFoundError("Feature is not assigned to this school")

    links = normalize_menu_links(menu_links)
    stmt = upsert_statement(db, SchoolFeatureSetup.__table__).values(
        id=uuid4(),
        school_id=school_id,
        feature_id=feature_id,
        menu_links=links,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=["school_id", "feature_id"],
        set_={"menu_links": stmt.excluded.menu_links, "updated_at": func.now()},
    )
    await db.execute(stmt)
    await db.commit()

    setups = await get_school_feature_setup(db, school_id, feature_id)
    return setups[0]


async def get_school_features_with_menu(db: AsyncSession, school_id: UUID) -> list[dict]:
    """
    Enabled features of a school with their effective menu links.

    A stored setup overrides the feature defaults; disabled entitlements are
    never listed even when a setup row exists.
    """
    enabled = await get_enabled_school_features(db, school_id)
    setups = {
        setup.feature_id: setup for setup in await get_school_feature_setup(db, school_id)
    }

    menu = []
    for entitlement in enabled:
        feature = entitlement.feature
        if not feature.is_active:
            continue
        setup = setups.get(feature.id)
        menu.append(
            {
                "feature_id": feature.id,
                "key": feature.key,
                "name": feature.name,
                "menu_links": setup.menu_links if setup else feature.menu_links,
                "customized": setup is not None,
            }
        )
    return menu
