"""Invoice template routes."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.core.deps import DbSession, SchoolUser, SuperAdmin, require_permission
from app.schemas.invoice import (
    InvoiceTemplateCreate,
    InvoiceTemplateResponse,
    InvoiceTemplateUpdate,
)
from app.services import invoice_template as template_service

router = APIRouter(prefix="/invoice-templates", tags=["Invoice Templates"])


async def _get_template_or_404(db, template_id: UUID):
    template = await template_service.get_template_by_id(db, template_id)
    if not template:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Invoice template not found",
        )
    return template


@router.get(
    "",
    response_model=list[InvoiceTemplateResponse],
    dependencies=[Depends(require_permission("templates:read"))],
)
async def list_templates(
    db: DbSession,
    current_user: SchoolUser,
    school_id: UUID | None = Query(None, description="Include this school's templates"),
) -> list[InvoiceTemplateResponse]:
    """Global templates plus the school's own."""
    if not current_user.is_superadmin:
        school_id = current_user.school_id
    templates = await template_service.get_templates(db, school_id)
    return [InvoiceTemplateResponse.model_validate(t) for t in templates]


@router.post("", response_model=InvoiceTemplateResponse, status_code=status.HTTP_201_CREATED)
async def create_template(
    template_data: InvoiceTemplateCreate,
    db: DbSession,
    current_user: SuperAdmin,
) -> InvoiceTemplateResponse:
    """Create an invoice template. Leave **school_id** empty for a global one."""
    template = await template_service.create_template(db, template_data)
    return InvoiceTemplateResponse.model_validate(template)


@router.get(
    "/{template_id}",
    response_model=InvoiceTemplateResponse,
    dependencies=[Depends(require_permission("templates:read"))],
)
async def get_template(
    template_id: UUID,
    db: DbSession,
    current_user: SchoolUser,
) -> InvoiceTemplateResponse:
    """Get an invoice template by ID."""
    template = await template_service.get_template_by_id(db, template_id)
    if not template or (
        not current_user.is_superadmin
        and template.school_id not in (None, current_user.school_id)
    ):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Invoice template not found",
        )
    return InvoiceTemplateResponse.model_validate(template)


@router.put("/{template_id}", response_model=InvoiceTemplateResponse)
async def update_template(
    template_id: UUID,
    template_data: InvoiceTemplateUpdate,
    db: DbSession,
    current_user: SuperAdmin,
) -> InvoiceTemplateResponse:
    """Update an invoice template. **school_id** cannot be changed."""
    template = await _get_template_or_404(db, template_id)
    updated = await template_service.update_template(db, template, template_data)
    return InvoiceTemplateResponse.model_validate(updated)


@router.delete("/{template_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_template(
    template_id: UUID,
    db: DbSession,
    current_user: SuperAdmin,
) -> None:
    """
    Delete an invoice template.

    Invoices that used it are kept without a template.
    """
    template = await _get_template_or_404(db, template_id)
    await template_service.delete_template(db, template)
