"""School routes."""

from uuid import UUID

from fastapi import APIRouter, File, HTTPException, Query, UploadFile, status

from app.core.deps import DbSession, NotifierDep, SchoolUser, StorageDep, SuperAdmin
from app.models.school import PaymentStatus, SchoolStatus
from app.schemas.school import (
    BranchCreate,
    BranchResponse,
    BranchStatusUpdate,
    BranchUpdate,
    CommunicationSettingsResponse,
    SchoolCreate,
    SchoolListResponse,
    SchoolPaymentStatusUpdate,
    SchoolResponse,
    SchoolUpdate,
)
from app.services import access as access_service
from app.services import school as school_service
from app.services.notifications import communication_channels

router = APIRouter(prefix="/schools", tags=["Schools"])


async def _get_school_or_404(db, school_id: UUID):
    school = await school_service.get_school_by_id(db, school_id)
    if not school:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="School not found",
        )
    return school


async def _get_branch_or_404(db, school_id: UUID, branch_id: UUID):
    branch = await school_service.get_branch_by_id(db, school_id, branch_id)
    if not branch:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Branch not found",
        )
    return branch


# ============== Endpoints ==============


@router.get("", response_model=SchoolListResponse)
async def list_schools(
    db: DbSession,
    current_user: SchoolUser,
    school_status: SchoolStatus | None = Query(None, alias="status", description="Filter by status"),
    payment_status: PaymentStatus | None = Query(None, description="Filter by payment status"),
    search: str | None = Query(None, description="Search by name or short name"),
    skip: int = Query(0, ge=0, description="Number of records to skip"),
    limit: int = Query(20, ge=1, le=100, description="Max number of records"),
) -> SchoolListResponse:
    """
    List schools.

    - SUPERADMIN: Can see all schools
    - Others: Can only see their own school
    """
    if current_user.is_superadmin:
        schools, total = await school_service.get_schools(
            db,
            status=school_status,
            payment_status=payment_status,
            search=search,
            skip=skip,
            limit=limit,
        )
    else:
        # Tenant users can only see their own school
        school = await school_service.get_school_by_id(db, current_user.school_id)
        schools = [school] if school else []
        total = len(schools)

    return SchoolListResponse(
        items=[SchoolResponse.model_validate(s) for s in schools],
        total=total,
        skip=skip,
        limit=limit,
    )


@router.post("", response_model=SchoolResponse, status_code=status.HTTP_201_CREATED)
async def create_school(
    school_data: SchoolCreate,
    db: DbSession,
    current_user: SuperAdmin,
) -> SchoolResponse:
    """
    Provision a new school.

    - Creates the main branch
    - Optionally creates a school admin and enables initial features
    - Only SUPERADMIN can create schools
    """
    school = await school_service.create_school(db, school_data)
    return SchoolResponse.model_validate(school)


@router.get("/{school_id}", response_model=SchoolResponse)
async def get_school(
    school_id: UUID,
    db: DbSession,
    current_user: SchoolUser,
) -> SchoolResponse:
    """
    Get a specific school by ID.

    - SUPERADMIN: Can see any school
    - Others: Can only see their own school
    """
    if not current_user.is_superadmin and current_user.school_id != school_id:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="School not found",
        )

    school = await _get_school_or_404(db, school_id)
    return SchoolResponse.model_validate(school)


@router.patch("/{school_id}", response_model=SchoolResponse)
async def update_school(
    school_id: UUID,
    school_data: SchoolUpdate,
    db: DbSession,
    current_user: SuperAdmin,
) -> SchoolResponse:
    """Update a school."""
    school = await _get_school_or_404(db, school_id)
    updated_school = await school_service.update_school(db, school, school_data)
    return SchoolResponse.model_validate(updated_school)


@router.patch("/{school_id}/payment-status", response_model=SchoolResponse)
async def update_payment_status(
    school_id: UUID,
    payment_data: SchoolPaymentStatusUpdate,
    db: DbSession,
    current_user: SuperAdmin,
) -> SchoolResponse:
    """
    Set a school's payment status.

    - UNPAID starts the access grace period
    - PAID lifts any access block
    """
    school = await _get_school_or_404(db, school_id)
    updated_school = await access_service.set_school_payment_status(
        db,
        school,
        payment_data.payment_status,
        next_payment_due=payment_data.next_payment_due,
    )
    return SchoolResponse.model_validate(updated_school)


@router.post("/{school_id}/logo", response_model=SchoolResponse)
async def upload_school_logo(
    school_id: UUID,
    db: DbSession,
    storage: StorageDep,
    current_user: SuperAdmin,
    file: UploadFile = File(...),
) -> SchoolResponse:
    """
    Upload a school logo.

    - Validates file type and size
    - Stores the file and keeps its URL on the school
    """
    school = await _get_school_or_404(db, school_id)
    content = await file.read()
    updated_school = await school_service.upload_logo(
        db,
        school,
        storage,
        content,
        file.filename,
        file.content_type,
    )
    return SchoolResponse.model_validate(updated_school)


@router.delete("/{school_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_school(
    school_id: UUID,
    db: DbSession,
    current_user: SuperAdmin,
) -> None:
    """Deactivate a school (soft delete)."""
    school = await _get_school_or_404(db, school_id)
    await school_service.deactivate_school(db, school)


@router.get(
    "/{school_id}/communication-settings",
    response_model=CommunicationSettingsResponse,
)
async def get_communication_settings(
    school_id: UUID,
    db: DbSession,
    notifier: NotifierDep,
    current_user: SuperAdmin,
) -> CommunicationSettingsResponse:
    """
    Channels an invoice for this school can be delivered through.

    - Email needs a school email and a configured SMTP server
    - WhatsApp and SMS need a phone number and a configured Twilio account
    """
    school = await _get_school_or_404(db, school_id)
    channels = communication_channels(school.email, school.phones, notifier)
    return CommunicationSettingsResponse(**channels)


# ============== Branches ==============


@router.get("/{school_id}/branches", response_model=list[BranchResponse])
async def list_branches(
    school_id: UUID,
    db: DbSession,
    current_user: SchoolUser,
    include_deleted: bool = Query(False, description="Include deleted branches"),
) -> list[BranchResponse]:
    """
    List a school's branches, main branch first.

    - SUPERADMIN: Any school
    - Others: Only their own school
    """
    if not current_user.is_superadmin and current_user.school_id != school_id:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="School not found",
        )

    await _get_school_or_404(db, school_id)
    branches = await school_service.get_branches(db, school_id, include_deleted)
    return [BranchResponse.model_validate(b) for b in branches]


@router.post(
    "/{school_id}/branches",
    response_model=BranchResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_branch(
    school_id: UUID,
    branch_data: BranchCreate,
    db: DbSession,
    current_user: SuperAdmin,
) -> BranchResponse:
    """Add a secondary branch to a school."""
    school = await _get_school_or_404(db, school_id)
    branch = await school_service.create_branch(db, school, branch_data.name)
    return BranchResponse.model_validate(branch)


@router.put("/{school_id}/branches/{branch_id}", response_model=BranchResponse)
async def update_branch(
    school_id: UUID,
    branch_id: UUID,
    branch_data: BranchUpdate,
    db: DbSession,
    current_user: SuperAdmin,
) -> BranchResponse:
    """Rename a branch."""
    branch = await _get_branch_or_404(db, school_id, branch_id)
    updated = await school_service.rename_branch(db, branch, branch_data.name)
    return BranchResponse.model_validate(updated)


@router.patch("/{school_id}/branches/{branch_id}/status", response_model=BranchResponse)
async def update_branch_status(
    school_id: UUID,
    branch_id: UUID,
    status_data: BranchStatusUpdate,
    db: DbSession,
    current_user: SuperAdmin,
) -> BranchResponse:
    """
    Set a branch's status.

    - **status**: active, suspended or deleted
    - The main branch cannot be suspended or deleted
    """
    branch = await _get_branch_or_404(db, school_id, branch_id)
    updated = await school_service.set_branch_status(db, branch, status_data.status)
    return BranchResponse.model_validate(updated)
