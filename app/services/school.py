"""School service."""

from uuid import UUID, uuid4

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import ConflictError, StateError, ValidationError
from app.core.logging import get_logger
from app.core.permissions import Role
from app.core.security import get_password_hash
from app.models.feature import Feature
from app.models.school import Branch, BranchStatus, PaymentStatus, School, SchoolStatus
from app.models.user import User
from app.schemas.school import SchoolCreate, SchoolUpdate
from app.services.entitlement import upsert_entitlements
from app.services.storage import Storage, validate_image_upload

logger = get_logger(__name__)

MAIN_BRANCH_NAME = "Main Branch"


async def get_school_by_id(db: AsyncSession, school_id: UUID) -> School | None:
    """Get school by ID."""
    result = await db.execute(
        select(School).where(School.id == school_id).execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_school_by_short_name(db: AsyncSession, short_name: str) -> School | None:
    """Get school by its URL short name."""
    result = await db.execute(select(School).where(School.short_name == short_name.lower()))
    return result.scalar_one_or_none()


async def get_schools(
    db: AsyncSession,
    *,
    status: SchoolStatus | None = None,
    payment_status: PaymentStatus | None = None,
    search: str | None = None,
    skip: int = 0,
    limit: int = 20,
) -> tuple[list[School], int]:
    """Get list of schools with optional filters."""
    query = select(School)
    count_query = select(func.count()).select_from(School)

    # Apply filters
    filters = []
    if status is not None:
        filters.append(School.status == status)
    if payment_status is not None:
        filters.append(School.payment_status == payment_status)
    if search:
        filters.append(
            or_(School.name.ilike(f"%{search}%"), School.short_name.ilike(f"%{search}%"))
        )
    if filters:
        query = query.where(*filters)
        count_query = count_query.where(*filters)

    # Get total count
    total_result = await db.execute(count_query)
    total = total_result.scalar() or 0

    # Get paginated results
    query = query.order_by(School.created_at.desc(), School.name).offset(skip).limit(limit)
    result = await db.execute(query)
    schools = list(result.scalars().all())

    return schools, total


async def _resolve_feature_keys(db: AsyncSession, keys: list[str]) -> list[UUID]:
    if not keys:
        return []
    result = await db.execute(select(Feature.id, Feature.key).where(Feature.key.in_(set(keys))))
    ids_by_key = {row.key: row.id for row in result}
    unknown = [key for key in keys if key not in ids_by_key]
    if unknown:
        raise ValidationError(
            "Unknown features",
            errors=[
                {"field": "initial_features", "message": f"Feature '{key}' does not exist"}
                for key in unknown
            ],
        )
    return list(dict.fromkeys(ids_by_key[key] for key in keys))


async def create_school(db: AsyncSession, school_data: SchoolCreate) -> School:
    """
    Provision a school.

    Creates the main branch, an optional school admin account and enables
    the requested initial features, all in one transaction.
    """
    if await get_school_by_short_name(db, school_data.short_name):
        raise ConflictError(f"School with short name '{school_data.short_name}' already exists")

    if school_data.admin_email:
        existing = await db.execute(select(User.id).where(User.email == school_data.admin_email))
        if existing.scalar_one_or_none():
            raise ConflictError("User with this email already exists")

    feature_ids = await _resolve_feature_keys(db, school_data.initial_features)

    school = School(
        id=uuid4(),
        name=school_data.name,
        short_name=school_data.short_name,
        abbreviation=school_data.abbreviation,
        motto=school_data.motto,
        state=school_data.state,
        lga=school_data.lga,
        address=school_data.address,
        phones=school_data.phones,
        email=school_data.email,
        type=school_data.type,
        status=SchoolStatus.ACTIVE,
        payment_status=PaymentStatus.PENDING,
    )
    branch = Branch(id=uuid4(), school_id=school.id, name=MAIN_BRANCH_NAME, is_main=True)
    school.main_branch_id = branch.id

    try:
        db.add(school)
        await db.flush()
        db.add(branch)
        await db.flush()

        if school_data.admin_email:
            db.add(
                User(
                    email=school_data.admin_email,
                    password_hash=get_password_hash(settings.DEFAULT_SCHOOL_ADMIN_PASSWORD),
                    name=school_data.admin_name,
                    role=Role.SCHOOL_ADMIN,
                    school_id=school.id,
                    branch_id=branch.id,
                    force_password_change=True,
                    is_active=True,
                )
            )

        if feature_ids:
            await upsert_entitlements(db, [(school.id, fid) for fid in feature_ids], True)

        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError(f"School with short name '{school_data.short_name}' already exists")

    logger.info(
        "School created",
        extra={
            "school_id": str(school.id),
            "short_name": school.short_name,
            "initial_features": len(feature_ids),
        },
    )
    return await get_school_by_id(db, school.id)


async def update_school(
    db: AsyncSession,
    school: School,
    school_data: SchoolUpdate,
) -> School:
    """Update a school."""
    update_data = school_data.model_dump(exclude_unset=True)

    for field, value in update_data.items():
        if value is None and field in ("name", "phones", "type", "status"):
            continue
        setattr(school, field, value)

    await db.commit()
    await db.refresh(school)

    return school


async def deactivate_school(db: AsyncSession, school: School) -> School:
    """Soft delete a school by disabling it."""
    school.status = SchoolStatus.DISABLED
    await db.commit()
    await db.refresh(school)
    logger.info("School deactivated", extra={"school_id": str(school.id)})
    return school


async def upload_logo(
    db: AsyncSession,
    school: School,
    storage: Storage,
    content: bytes,
    filename: str | None,
    content_type: str | None,
) -> School:
    """Validate and store a school logo, keeping only the returned URL."""
    validate_image_upload(content, content_type)

    uploaded = await storage.upload(content, filename, content_type, folder="logos")
    school.logo_url = uploaded["url"]
    await db.commit()
    await db.refresh(school)
    return school


# ============== Branches ==============


async def get_branches(
    db: AsyncSession,
    school_id: UUID,
    include_deleted: bool = False,
) -> list[Branch]:
    """Branches of a school, main branch first."""
    query = select(Branch).where(Branch.school_id == school_id)
    if not include_deleted:
        query = query.where(Branch.status != BranchStatus.DELETED)
    result = await db.execute(query.order_by(Branch.is_main.desc(), Branch.name))
    return list(result.scalars().all())


async def get_branch_by_id(
    db: AsyncSession,
    school_id: UUID,
    branch_id: UUID,
) -> Branch | None:
    """Get a branch of a school by ID."""
    result = await db.execute(
        select(Branch).where(Branch.id == branch_id, Branch.school_id == school_id)
    )
    return result.scalar_one_or_none()


async def create_branch(db: AsyncSession, school: School, name: str) -> Branch:
    """Add a secondary branch to a school."""
    branch = Branch(
        school_id=school.id,
        name=name,
        is_main=False,
        status=BranchStatus.ACTIVE,
    )
    db.add(branch)
    await db.commit()
    await db.refresh(branch)

    logger.info(
        "Branch created",
        extra={"school_id": str(school.id), "branch_id": str(branch.id)},
    )
    return branch


async def rename_branch(db: AsyncSession, branch: Branch, name: str) -> Branch:
    """Rename a branch."""
    branch.name = name
    await db.commit()
    await db.refresh(branch)
    return branch


async def set_branch_status(
    db: AsyncSession,
    branch: Branch,
    status: BranchStatus,
) -> Branch:
    """Suspend, delete or reactivate a branch. The main branch always stays active."""
    if branch.is_main and status != BranchStatus.ACTIVE:
        raise StateError("The main branch cannot be suspended or deleted")

    branch.status = status
    await db.commit()
    await db.refresh(branch)

    logger.info(
        "Branch status changed",
        extra={"branch_id": str(branch.id), "status": status.value},
    )
    return branch
