"""Tenant-scoped routes for users of a school.

Everything here except ``/school/access`` sits behind the payment access gate.
"""

from fastapi import APIRouter, HTTPException, Query, status

from app.core.config import settings
from app.core.deps import CurrentUser, DbSession, FeatureUser, SchoolUser
from app.core.permissions import has_permission
from app.models.school import School
from app.schemas.feature import SchoolFeatureMenu
from app.schemas.invoice import InvoiceListResponse, InvoiceResponse
from app.schemas.school import AccessStatusResponse
from app.services import entitlement as entitlement_service
from app.services import invoice as invoice_service
from app.services.access import evaluate_school_access

router = APIRouter(prefix="/school", tags=["Tenant"])


def _school_id(current_user):
    if current_user.school_id is None:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="No school associated with this account",
        )
    return current_user.school_id


@router.get("/access", response_model=AccessStatusResponse)
async def get_access_status(
    db: DbSession,
    current_user: CurrentUser,
) -> AccessStatusResponse:
    """
    Report whether the school may use the platform.

    Not gated itself so a blocked school can still see why.
    """
    school = await db.get(School, _school_id(current_user))
    if school is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="School not found",
        )

    decision = evaluate_school_access(school)
    return AccessStatusResponse(
        allowed=decision.allowed,
        payment_status=decision.payment_status,
        days_overdue=decision.days_overdue,
        grace_period_days=settings.ACCESS_GRACE_PERIOD_DAYS,
    )


@router.get("/features", response_model=list[SchoolFeatureMenu])
async def list_my_features(
    db: DbSession,
    current_user: SchoolUser,
) -> list[SchoolFeatureMenu]:
    """Enabled features of the user's school with their menu links."""
    menu = await entitlement_service.get_school_features_with_menu(db, _school_id(current_user))
    return [SchoolFeatureMenu.model_validate(m) for m in menu]


@router.get("/features/{key}", response_model=SchoolFeatureMenu)
async def get_my_feature(
    key: str,
    db: DbSession,
    current_user: FeatureUser,
) -> SchoolFeatureMenu:
    """One enabled feature of the user's school. 403 when not enabled."""
    menu = await entitlement_service.get_school_features_with_menu(db, _school_id(current_user))
    for item in menu:
        if item["key"] == key:
            return SchoolFeatureMenu.model_validate(item)

    raise HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail="Feature not found",
    )


@router.get("/invoices", response_model=InvoiceListResponse)
async def list_my_invoices(
    db: DbSession,
    current_user: SchoolUser,
    skip: int = Query(0, ge=0, description="Number of records to skip"),
    limit: int = Query(100, ge=1, le=1000, description="Max number of records"),
) -> InvoiceListResponse:
    """Invoices issued to the user's school. Drafts are not shown."""
    if not has_permission(current_user.role, "invoices:read"):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not enough permissions",
        )

    invoices, total = await invoice_service.get_invoices(
        db,
        school_id=_school_id(current_user),
        exclude_drafts=True,
        skip=skip,
        limit=limit,
    )
    return InvoiceListResponse(
        items=[InvoiceResponse.model_validate(i) for i in invoices],
        total=total,
        skip=skip,
        limit=limit,
    )
