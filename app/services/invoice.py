"""Invoice service - business logic for invoice operations."""

import html
from collections.abc import Sequence
from datetime import date, datetime, time, timezone
from uuid import UUID, uuid4

from sqlalchemy import case, delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.config import settings
from app.core.exceptions import (
    ConflictError,
    ExternalServiceError,
    NotFoundError,
    StateError,
    ValidationError,
)
from app.core.logging import get_logger
from app.models.invoice import Invoice, InvoiceLine, InvoiceStatus
from app.models.school import PaymentStatus, School
from app.schemas.invoice import (
    DeliveryMethod,
    DeliveryResult,
    InvoiceCreate,
    InvoiceLineCreate,
    InvoiceSendRequest,
    InvoiceUpdate,
)
from app.services import pricing
from app.services.access import apply_payment_status
from app.services.entitlement import get_enabled_feature_ids
from app.services.feature import get_features_by_ids
from app.services.invoice_template import validate_template_for_school
from app.services.notifications import SMS, WHATSAPP, Notifier
from app.utils.time import utc_today, utcnow

logger = get_logger(__name__)

INVOICE_NUMBER_PREFIX = "INV"


# ============== Queries ==============


async def get_invoice_by_id(
    db: AsyncSession,
    invoice_id: UUID,
    school_id: UUID | None = None,
) -> Invoice | None:
    """Get invoice by ID, optionally filtered by school."""
    query = select(Invoice).where(Invoice.id == invoice_id)
    if school_id:
        query = query.where(Invoice.school_id == school_id)
    query = query.options(
        selectinload(Invoice.school),
        selectinload(Invoice.lines),
    ).execution_options(populate_existing=True)
    result = await db.execute(query)
    return result.scalar_one_or_none()


async def get_invoices(
    db: AsyncSession,
    school_id: UUID | None = None,
    status: InvoiceStatus | None = None,
    due_date_from: date | None = None,
    due_date_to: date | None = None,
    search: str | None = None,
    exclude_drafts: bool = False,
    skip: int = 0,
    limit: int = 100,
) -> tuple[list[Invoice], int]:
    """Get invoices with filters."""
    query = select(Invoice)

    # Apply filters
    if school_id:
        query = query.where(Invoice.school_id == school_id)
    if status:
        query = query.where(Invoice.status == status)
    if due_date_from:
        query = query.where(Invoice.due_date >= due_date_from)
    if due_date_to:
        query = query.where(Invoice.due_date <= due_date_to)
    if search:
        query = query.where(Invoice.invoice_number.ilike(f"%{search}%"))
    if exclude_drafts:
        query = query.where(Invoice.status != InvoiceStatus.DRAFT)

    # Count total
    count_query = select(func.count()).select_from(query.subquery())
    total_result = await db.execute(count_query)
    total = total_result.scalar() or 0

    # Apply pagination and ordering
    query = query.options(
        selectinload(Invoice.school),
        selectinload(Invoice.lines),
    ).order_by(Invoice.created_at.desc(), Invoice.invoice_number.desc())
    query = query.offset(skip).limit(limit).execution_options(populate_existing=True)

    result = await db.execute(query)
    invoices = list(result.scalars().all())

    return invoices, total


# ============== Numbering ==============


def _parse_sequence(invoice_number: str, prefix: str) -> int | None:
    suffix = invoice_number[len(prefix):]
    return int(suffix) if suffix.isdigit() else None


async def generate_invoice_number(db: AsyncSession, year: int) -> str:
    """
    Next number in the ``INV-YYYY-NNN`` sequence for ``year``.

    Suffixes are compared numerically so the sequence keeps growing past 999.
    """
    prefix = f"{INVOICE_NUMBER_PREFIX}-{year}-"
    result = await db.execute(
        select(Invoice.invoice_number).where(Invoice.invoice_number.like(f"{prefix}%"))
    )
    sequences = [
        seq
        for seq in (_parse_sequence(number, prefix) for number in result.scalars().all())
        if seq is not None
    ]
    next_sequence = max(sequences, default=0) + 1
    return f"{prefix}{next_sequence:03d}"


# ============== Line validation ==============


async def _price_selections(
    db: AsyncSession,
    school_id: UUID,
    selections: Sequence[InvoiceLineCreate],
) -> list[pricing.PricedLine]:
    """Price selections, rejecting features not currently enabled for the school."""
    features = await get_features_by_ids(db, [s.feature_id for s in selections])
    enabled_ids = await get_enabled_feature_ids(db, school_id)

    entitlement_errors = [
        {
            "field": f"lines[{index}].feature_id",
            "message": f"{features[s.feature_id].name} is not enabled for this school",
        }
        for index, s in enumerate(selections)
        if s.feature_id in features and s.feature_id not in enabled_ids
    ]

    try:
        priced = pricing.price_lines(selections, features)
    except ValidationError as exc:
        raise ValidationError(exc.detail, errors=entitlement_errors + exc.errors)

    if entitlement_errors:
        raise ValidationError("Invalid invoice lines", errors=entitlement_errors)

    return priced


def _build_lines(invoice_id: UUID, priced: list[pricing.PricedLine]) -> list[InvoiceLine]:
    return [
        InvoiceLine(
            id=uuid4(),
            invoice_id=invoice_id,
            feature_id=line.feature_id,
            position=position,
            description=line.description,
            quantity=line.quantity,
            unit_price=line.unit_price,
            unit_measurement=line.unit_measurement,
            negotiated_price=line.negotiated_price,
            start_date=line.start_date,
            end_date=line.end_date,
            total=line.total,
        )
        for position, line in enumerate(priced)
    ]


# ============== Lifecycle ==============


async def create_invoice(
    db: AsyncSession,
    invoice_data: InvoiceCreate,
) -> Invoice:
    """
    Create a DRAFT invoice with its lines in one transaction.

    A concurrent insert of the same invoice number trips the unique
    constraint; the whole transaction is rolled back and retried with a
    freshly generated number.
    """
    school = await db.get(School, invoice_data.school_id)
    if school is None:
        raise NotFoundError("School not found")

    if invoice_data.template_id:
        await validate_template_for_school(db, invoice_data.template_id, invoice_data.school_id)

    priced = await _price_selections(db, invoice_data.school_id, invoice_data.lines)
    total_amount = pricing.subtotal(priced)
    year = utcnow().year

    for attempt in range(1, settings.INVOICE_NUMBER_MAX_RETRIES + 1):
        invoice_number = await generate_invoice_number(db, year)
        invoice = Invoice(
            id=uuid4(),
            invoice_number=invoice_number,
            school_id=invoice_data.school_id,
            template_id=invoice_data.template_id,
            total_amount=total_amount,
            custom_amount=invoice_data.custom_amount,
            status=InvoiceStatus.DRAFT,
            due_date=invoice_data.due_date,
            notes=invoice_data.notes,
            email_sent=False,
        )
        db.add(invoice)
        db.add_all(_build_lines(invoice.id, priced))
        try:
            await db.commit()
            break
        except IntegrityError:
            await db.rollback()
            logger.warning(
                "Invoice number collision, retrying",
                extra={"invoice_number": invoice_number, "attempt": attempt},
            )
    else:
        raise ConflictError("Could not allocate a unique invoice number, please retry")

    logger.info(
        "Invoice created",
        extra={
            "invoice_id": str(invoice.id),
            "invoice_number": invoice_number,
            "school_id": str(invoice_data.school_id),
            "amount_due": pricing.final_amount(total_amount, invoice_data.custom_amount),
        },
    )
    return await get_invoice_by_id(db, invoice.id)


def _ensure_draft(invoice: Invoice) -> None:
    if invoice.status != InvoiceStatus.DRAFT:
        status = InvoiceStatus(invoice.status).value
        raise StateError(f"Only DRAFT invoices can be edited (invoice is {status})")


async def update_invoice(
    db: AsyncSession,
    invoice: Invoice,
    invoice_data: InvoiceUpdate,
) -> Invoice:
    """Update a DRAFT invoice. Replacing lines recomputes the total."""
    _ensure_draft(invoice)
    update_data = invoice_data.model_dump(exclude_unset=True, exclude={"lines"})

    if update_data.get("template_id"):
        await validate_template_for_school(db, update_data["template_id"], invoice.school_id)
    if "due_date" in update_data and update_data["due_date"] is None:
        del update_data["due_date"]

    if invoice_data.lines is not None:
        priced = await _price_selections(db, invoice.school_id, invoice_data.lines)
        await db.execute(
            delete(InvoiceLine)
            .where(InvoiceLine.invoice_id == invoice.id)
            .execution_options(synchronize_session=False)
        )
        db.add_all(_build_lines(invoice.id, priced))
        invoice.total_amount = pricing.subtotal(priced)

    for field, value in update_data.items():
        setattr(invoice, field, value)

    await db.commit()

    return await get_invoice_by_id(db, invoice.id)


def _transition(invoice: Invoice, target: InvoiceStatus) -> None:
    if not invoice.can_transition_to(target):
        current = InvoiceStatus(invoice.status).value
        raise StateError(f"Cannot change invoice status from {current} to {target.value}")
    invoice.status = target


def _mark_sent(invoice: Invoice, school: School) -> None:
    """DRAFT -> SENT. The school now owes this invoice."""
    _transition(invoice, InvoiceStatus.SENT)
    school.next_payment_due = datetime.combine(invoice.due_date, time.min, tzinfo=timezone.utc)
    if school.payment_status == PaymentStatus.PAID:
        school.payment_status = PaymentStatus.PENDING


async def issue_invoice(db: AsyncSession, invoice: Invoice) -> Invoice:
    """Move a DRAFT invoice to SENT without delivering it."""
    _mark_sent(invoice, invoice.school)
    await db.commit()
    logger.info("Invoice issued", extra={"invoice_id": str(invoice.id)})
    return await get_invoice_by_id(db, invoice.id)


def build_invoice_message(invoice: Invoice, school: School) -> str:
    """Plain text summary used for WhatsApp/SMS and as the email intro."""
    lines = [
        f"Dear {school.name},",
        "",
        f"Invoice {invoice.invoice_number} for "
        f"{pricing.format_amount(invoice.amount_due)} is due on {invoice.due_date.isoformat()}.",
    ]
    if invoice.custom_amount is not None and invoice.custom_amount != invoice.total_amount:
        lines.append(f"Base: {pricing.format_amount(invoice.total_amount)}")
    lines.extend(["", f"Thank you, {settings.APP_NAME}"])
    return "\n".join(lines)


def render_invoice_email(invoice: Invoice, school: School, message: str) -> str:
    """Minimal HTML body listing the invoice lines."""
    rows = "".join(
        "<tr>"
        f"<td>{html.escape(line.description)}</td>"
        f"<td>{line.quantity}</td>"
        f"<td>{pricing.format_amount(pricing.effective_price(line.unit_price, line.negotiated_price))}</td>"
        f"<td>{pricing.format_amount(line.total)}</td>"
        "</tr>"
        for line in invoice.lines
    )
    body = html.escape(message).replace("\n", "<br>")
    return (
        f"<h2>Invoice {html.escape(invoice.invoice_number)}</h2>"
        f"<p>{body}</p>"
        "<table><tr><th>Feature</th><th>Qty</th><th>Price</th><th>Total</th></tr>"
        f"{rows}</table>"
        f"<p><strong>Amount due: {pricing.format_amount(invoice.amount_due)}</strong></p>"
        f"<p>Due date: {invoice.due_date.isoformat()}</p>"
    )


async def send_invoice(
    db: AsyncSession,
    invoice: Invoice,
    send_data: InvoiceSendRequest,
    notifier: Notifier,
) -> tuple[Invoice, DeliveryResult]:
    """
    Deliver an invoice through the requested channels.

    Each channel is attempted independently; failures are reported in the
    result, never raised. A DRAFT invoice becomes SENT when at least one
    channel succeeds.
    """
    if invoice.status in (InvoiceStatus.PAID, InvoiceStatus.CANCELLED):
        raise StateError(f"Cannot send a {InvoiceStatus(invoice.status).value} invoice")

    school = invoice.school
    email_to = send_data.recipients.email or school.email
    phone_to = send_data.recipients.phone or (school.phones[0] if school.phones else None)
    subject = send_data.subject or f"Invoice {invoice.invoice_number} from {settings.APP_NAME}"
    message = send_data.message or build_invoice_message(invoice, school)

    channels = {
        DeliveryMethod.EMAIL: ["email"],
        DeliveryMethod.WHATSAPP: [WHATSAPP],
        DeliveryMethod.SMS: [SMS],
        DeliveryMethod.BOTH: ["email", WHATSAPP],
    }[send_data.method]

    result = DeliveryResult()
    for channel in channels:
        if channel == "email":
            if not email_to:
                result.errors.append("Email: no recipient email address")
                continue
            try:
                await notifier.send_email(
                    email_to, subject, render_invoice_email(invoice, school, message)
                )
                result.email = True
            except ExternalServiceError as exc:
                result.errors.append(f"Email: {exc.detail}")
        else:
            label = "WhatsApp" if channel == WHATSAPP else "SMS"
            if not phone_to:
                result.errors.append(f"{label}: no recipient phone number")
                continue
            try:
                await notifier.send_message(phone_to, message, channel)
                setattr(result, channel, True)
            except ExternalServiceError as exc:
                result.errors.append(f"{label}: {exc.detail}")

    if result.email:
        invoice.email_sent = True
        invoice.email_sent_at = utcnow()
    if result.any_succeeded and invoice.status == InvoiceStatus.DRAFT:
        _mark_sent(invoice, school)

    await db.commit()

    logger.info(
        "Invoice delivery attempted",
        extra={
            "invoice_id": str(invoice.id),
            "method": send_data.method.value,
            "email": result.email,
            "whatsapp": result.whatsapp,
            "sms": result.sms,
            "errors": len(result.errors),
        },
    )
    return await get_invoice_by_id(db, invoice.id), result


async def mark_paid(db: AsyncSession, invoice: Invoice) -> Invoice:
    """Mark an invoice paid and restore the school's access in one commit."""
    _transition(invoice, InvoiceStatus.PAID)
    now = utcnow()
    invoice.paid_at = now
    apply_payment_status(invoice.school, PaymentStatus.PAID, now)
    await db.commit()

    logger.info(
        "Invoice paid",
        extra={"invoice_id": str(invoice.id), "school_id": str(invoice.school_id)},
    )
    return await get_invoice_by_id(db, invoice.id)


async def cancel_invoice(db: AsyncSession, invoice: Invoice) -> Invoice:
    """Cancel a SENT or OVERDUE invoice."""
    _transition(invoice, InvoiceStatus.CANCELLED)
    await db.commit()
    logger.info("Invoice cancelled", extra={"invoice_id": str(invoice.id)})
    return await get_invoice_by_id(db, invoice.id)


async def delete_invoice(db: AsyncSession, invoice: Invoice) -> None:
    """Delete an invoice and its lines. Paid invoices are kept."""
    if invoice.status == InvoiceStatus.PAID:
        raise StateError("Paid invoices cannot be deleted")

    await db.execute(
        delete(InvoiceLine)
        .where(InvoiceLine.invoice_id == invoice.id)
        .execution_options(synchronize_session=False)
    )
    await db.execute(
        delete(Invoice)
        .where(Invoice.id == invoice.id)
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    logger.info("Invoice deleted", extra={"invoice_number": invoice.invoice_number})


async def update_overdue_invoices(
    db: AsyncSession,
    school_id: UUID | None = None,
    today: date | None = None,
) -> int:
    """
    Update status of overdue invoices.

    SENT invoices past their due date become OVERDUE and their schools
    become UNPAID, which starts the access grace period.
    Returns count of updated invoices.
    """
    today = today or utc_today()
    query = select(Invoice).where(
        Invoice.status == InvoiceStatus.SENT,
        Invoice.due_date < today,
    )
    if school_id:
        query = query.where(Invoice.school_id == school_id)

    result = await db.execute(query.options(selectinload(Invoice.school)))
    invoices = result.scalars().all()

    now = utcnow()
    count = 0
    for invoice in invoices:
        invoice.status = InvoiceStatus.OVERDUE
        if invoice.school.payment_status != PaymentStatus.UNPAID:
            apply_payment_status(invoice.school, PaymentStatus.UNPAID, now)
        count += 1

    await db.commit()
    if count:
        logger.info("Invoices marked overdue", extra={"count": count})
    return count


async def get_billing_summary(db: AsyncSession) -> dict:
    """Platform-wide billing statistics."""
    school_row = (
        await db.execute(
            select(
                func.count(School.id).label("total"),
                func.coalesce(
                    func.sum(case((School.payment_status == PaymentStatus.PAID, 1), else_=0)), 0
                ).label("paid"),
                func.coalesce(
                    func.sum(case((School.payment_status == PaymentStatus.UNPAID, 1), else_=0)), 0
                ).label("unpaid"),
            )
        )
    ).one()

    status_counts = {status: 0 for status in InvoiceStatus}
    status_result = await db.execute(
        select(Invoice.status, func.count(Invoice.id)).group_by(Invoice.status)
    )
    for status, count in status_result:
        status_counts[InvoiceStatus(status)] = count

    amount_due = func.coalesce(Invoice.custom_amount, Invoice.total_amount)
    today = utc_today()
    month_start = datetime(today.year, today.month, 1, tzinfo=timezone.utc)

    revenue = (
        await db.execute(
            select(func.coalesce(func.sum(amount_due), 0)).where(
                Invoice.status == InvoiceStatus.PAID,
                Invoice.paid_at >= month_start,
            )
        )
    ).scalar()
    outstanding = (
        await db.execute(
            select(func.coalesce(func.sum(amount_due), 0)).where(
                Invoice.status.in_([InvoiceStatus.SENT, InvoiceStatus.OVERDUE])
            )
        )
    ).scalar()

    return {
        "total_schools": school_row.total,
        "paid_schools": int(school_row.paid),
        "unpaid_schools": int(school_row.unpaid),
        "invoices_by_status": status_counts,
        "revenue_this_month": int(revenue or 0),
        "outstanding_amount": int(outstanding or 0),
    }
