"""Invoice template service."""

from uuid import UUID

from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotFoundError, ValidationError
from app.core.logging import get_logger
from app.models.invoice import Invoice, InvoiceTemplate
from app.models.school import School
from app.schemas.invoice import InvoiceTemplateCreate, InvoiceTemplateUpdate

logger = get_logger(__name__)

REQUIRED_FIELDS = ("name", "template_type", "primary_color", "accent_color", "is_default")


async def get_template_by_id(db: AsyncSession, template_id: UUID) -> InvoiceTemplate | None:
    """Get template by ID."""
    result = await db.execute(select(InvoiceTemplate).where(InvoiceTemplate.id == template_id))
    return result.scalar_one_or_none()


async def get_templates(
    db: AsyncSession,
    school_id: UUID | None = None,
) -> list[InvoiceTemplate]:
    """Global templates, plus the school's own when ``school_id`` is given."""
    query = select(InvoiceTemplate)
    if school_id:
        query = query.where(
            or_(InvoiceTemplate.school_id == None, InvoiceTemplate.school_id == school_id)
        )
    else:
        query = query.where(InvoiceTemplate.school_id == None)
    result = await db.execute(
        query.order_by(InvoiceTemplate.is_default.desc(), InvoiceTemplate.name)
    )
    return list(result.scalars().all())


async def create_template(
    db: AsyncSession,
    template_data: InvoiceTemplateCreate,
) -> InvoiceTemplate:
    """Create an invoice template."""
    if template_data.school_id:
        school = await db.get(School, template_data.school_id)
        if school is None:
            raise NotFoundError("School not found")

    template = InvoiceTemplate(**template_data.model_dump())
    db.add(template)
    await db.commit()
    await db.refresh(template)
    return template


async def update_template(
    db: AsyncSession,
    template: InvoiceTemplate,
    template_data: InvoiceTemplateUpdate,
) -> InvoiceTemplate:
    """Update an invoice template."""
    update_data = template_data.model_dump(exclude_unset=True)

    for field, value in update_data.items():
        if value is None and field in REQUIRED_FIELDS:
            continue
        setattr(template, field, value)

    await db.commit()
    await db.refresh(template)
    return template


async def delete_template(db: AsyncSession, template: InvoiceTemplate) -> None:
    """Delete a template. Invoices that used it keep their data and lose the reference."""
    await db.execute(
        update(Invoice).where(Invoice.template_id == template.id).values(template_id=None)
    )
    await db.delete(template)
    await db.commit()
    logger.info("Invoice template deleted", extra={"template_id": str(template.id)})


async def validate_template_for_school(
    db: AsyncSession,
    template_id: UUID,
    school_id: UUID,
) -> InvoiceTemplate:
    """A referenced template must exist and be global or owned by the school."""
    template = await get_template_by_id(db, template_id)
    if template is None or template.school_id not in (None, school_id):
        raise ValidationError(
            "Invalid invoice template",
            errors=[{"field": "template_id", "message": "Invoice template not found"}],
        )
    return template
