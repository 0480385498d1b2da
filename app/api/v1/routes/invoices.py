"""Invoice routes."""

from datetime import date
from uuid import UUID

from fastapi import APIRouter, HTTPException, Query, status

from app.core.deps import DbSession, NotifierDep, SchoolUser, SuperAdmin
from app.core.permissions import has_permission
from app.models.invoice import InvoiceStatus
from app.schemas.invoice import (
    BillingSummary,
    InvoiceCreate,
    InvoiceListResponse,
    InvoiceResponse,
    InvoiceSendRequest,
    InvoiceSendResponse,
    InvoiceUpdate,
    OverdueUpdateResponse,
)
from app.services import invoice as invoice_service

router = APIRouter(prefix="/invoices", tags=["Invoices"])


def _tenant_school_id(current_user) -> UUID:
    if current_user.school_id is None:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="No school associated with this account",
        )
    return current_user.school_id


async def _get_invoice_or_404(db, invoice_id: UUID, school_id: UUID | None = None):
    invoice = await invoice_service.get_invoice_by_id(db, invoice_id, school_id)
    if not invoice:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Invoice not found",
        )
    return invoice


@router.get("", response_model=InvoiceListResponse)
async def list_invoices(
    db: DbSession,
    current_user: SchoolUser,
    school_id: UUID | None = Query(None, description="Filter by school ID"),
    invoice_status: InvoiceStatus | None = Query(None, alias="status", description="Filter by status"),
    due_date_from: date | None = Query(None, description="Filter by due date from"),
    due_date_to: date | None = Query(None, description="Filter by due date to"),
    search: str | None = Query(None, description="Search by invoice number"),
    skip: int = Query(0, ge=0, description="Number of records to skip"),
    limit: int = Query(100, ge=1, le=1000, description="Max number of records"),
) -> InvoiceListResponse:
    """
    List invoices with optional filters.

    - **school_id**: Filter by school (tenant users always see their own)
    - **status**: DRAFT, SENT, PAID, OVERDUE or CANCELLED
    - **due_date_from/to**: Filter by due date range
    """
    if not has_permission(current_user.role, "invoices:read"):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not enough permissions",
        )

    # Tenant users can only see their own school's issued invoices
    exclude_drafts = not current_user.is_superadmin
    if not current_user.is_superadmin:
        school_id = _tenant_school_id(current_user)

    invoices, total = await invoice_service.get_invoices(
        db,
        school_id=school_id,
        status=invoice_status,
        due_date_from=due_date_from,
        due_date_to=due_date_to,
        search=search,
        exclude_drafts=exclude_drafts,
        skip=skip,
        limit=limit,
    )

    return InvoiceListResponse(
        items=[InvoiceResponse.model_validate(i) for i in invoices],
        total=total,
        skip=skip,
        limit=limit,
    )


@router.post("", response_model=InvoiceResponse, status_code=status.HTTP_201_CREATED)
async def create_invoice(
    invoice_data: InvoiceCreate,
    db: DbSession,
    current_user: SuperAdmin,
) -> InvoiceResponse:
    """
    Create a DRAFT invoice for a school.

    - Every line must reference a feature currently enabled for the school
    - Unit price, measurement and description default to the catalog
    - **custom_amount** replaces the computed total when set
    """
    invoice = await invoice_service.create_invoice(db, invoice_data)
    return InvoiceResponse.model_validate(invoice)


@router.get("/summary", response_model=BillingSummary)
async def get_billing_summary(
    db: DbSession,
    current_user: SuperAdmin,
) -> BillingSummary:
    """Platform billing statistics."""
    summary = await invoice_service.get_billing_summary(db)
    return BillingSummary(**summary)


@router.post("/update-overdue", response_model=OverdueUpdateResponse)
async def update_overdue_invoices(
    db: DbSession,
    current_user: SuperAdmin,
    school_id: UUID | None = Query(None, description="School ID (optional)"),
) -> OverdueUpdateResponse:
    """Mark SENT invoices past their due date as OVERDUE."""
    count = await invoice_service.update_overdue_invoices(db, school_id)
    return OverdueUpdateResponse(updated_count=count)


@router.get("/{invoice_id}", response_model=InvoiceResponse)
async def get_invoice(
    invoice_id: UUID,
    db: DbSession,
    current_user: SchoolUser,
) -> InvoiceResponse:
    """Get an invoice by ID."""
    if not has_permission(current_user.role, "invoices:read"):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not enough permissions",
        )

    school_id = None if current_user.is_superadmin else _tenant_school_id(current_user)
    invoice = await _get_invoice_or_404(db, invoice_id, school_id)
    if not current_user.is_superadmin and invoice.status == InvoiceStatus.DRAFT:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Invoice not found",
        )
    return InvoiceResponse.model_validate(invoice)


@router.patch("/{invoice_id}", response_model=InvoiceResponse)
async def update_invoice(
    invoice_id: UUID,
    invoice_data: InvoiceUpdate,
    db: DbSession,
    current_user: SuperAdmin,
) -> InvoiceResponse:
    """Update a DRAFT invoice."""
    invoice = await _get_invoice_or_404(db, invoice_id)
    updated = await invoice_service.update_invoice(db, invoice, invoice_data)
    return InvoiceResponse.model_validate(updated)


@router.post("/{invoice_id}/issue", response_model=InvoiceResponse)
async def issue_invoice(
    invoice_id: UUID,
    db: DbSession,
    current_user: SuperAdmin,
) -> InvoiceResponse:
    """Mark a DRAFT invoice as SENT without delivering it."""
    invoice = await _get_invoice_or_404(db, invoice_id)
    updated = await invoice_service.issue_invoice(db, invoice)
    return InvoiceResponse.model_validate(updated)


@router.post("/{invoice_id}/send", response_model=InvoiceSendResponse)
async def send_invoice(
    invoice_id: UUID,
    send_data: InvoiceSendRequest,
    db: DbSession,
    notifier: NotifierDep,
    current_user: SuperAdmin,
) -> InvoiceSendResponse:
    """
    Deliver an invoice by email, WhatsApp, SMS or both (email + WhatsApp).

    Channel failures are reported in **results.errors**; the request itself
    succeeds as long as the invoice can be sent.
    """
    invoice = await _get_invoice_or_404(db, invoice_id)
    updated, results = await invoice_service.send_invoice(db, invoice, send_data, notifier)

    if results.any_succeeded:
        message = "Invoice sent successfully"
    else:
        message = "Invoice could not be delivered"

    return InvoiceSendResponse(
        message=message,
        success=results.any_succeeded,
        results=results,
        invoice=InvoiceResponse.model_validate(updated),
    )


@router.patch("/{invoice_id}/mark-paid", response_model=InvoiceResponse)
async def mark_invoice_paid(
    invoice_id: UUID,
    db: DbSession,
    current_user: SuperAdmin,
) -> InvoiceResponse:
    """Mark an invoice as paid. The school's access is restored."""
    invoice = await _get_invoice_or_404(db, invoice_id)
    updated = await invoice_service.mark_paid(db, invoice)
    return InvoiceResponse.model_validate(updated)


@router.post("/{invoice_id}/cancel", response_model=InvoiceResponse)
async def cancel_invoice(
    invoice_id: UUID,
    db: DbSession,
    current_user: SuperAdmin,
) -> InvoiceResponse:
    """Cancel a SENT or OVERDUE invoice."""
    invoice = await _get_invoice_or_404(db, invoice_id)
    updated = await invoice_service.cancel_invoice(db, invoice)
    return InvoiceResponse.model_validate(updated)


@router.delete("/{invoice_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_invoice(
    invoice_id: UUID,
    db: DbSession,
    current_user: SuperAdmin,
) -> None:
    """
    Delete an invoice and its lines.

    Paid invoices cannot be deleted.
    """
    invoice = await _get_invoice_or_404(db, invoice_id)
    await invoice_service.delete_invoice(db, invoice)
