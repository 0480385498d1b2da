"""Invoice, InvoiceLine and InvoiceTemplate models."""

from datetime import date, datetime
from enum import Enum
from uuid import UUID

from sqlalchemy import (
    BigInteger,
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import BaseModel
from app.models.feature import PricingType


class InvoiceStatus(str, Enum):
    """Invoice lifecycle status."""

    DRAFT = "DRAFT"
    SENT = "SENT"
    PAID = "PAID"
    OVERDUE = "OVERDUE"
    CANCELLED = "CANCELLED"


# Allowed transitions; PAID and CANCELLED are terminal
INVOICE_TRANSITIONS: dict[InvoiceStatus, set[InvoiceStatus]] = {
    InvoiceStatus.DRAFT: {InvoiceStatus.SENT},
    InvoiceStatus.SENT: {InvoiceStatus.PAID, InvoiceStatus.OVERDUE, InvoiceStatus.CANCELLED},
    InvoiceStatus.OVERDUE: {InvoiceStatus.PAID, InvoiceStatus.CANCELLED},
    InvoiceStatus.PAID: set(),
    InvoiceStatus.CANCELLED: set(),
}


class Invoice(BaseModel):
    """Invoice issued by the platform to a school for its features."""

    __tablename__ = "invoices"

    invoice_number: Mapped[str] = mapped_column(
        String(30),
        unique=True,
        nullable=False,
        index=True,
    )
    school_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("schools.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    template_id: Mapped[UUID | None] = mapped_column(
        Uuid,
        ForeignKey("invoice_templates.id", ondelete="SET NULL"),
        nullable=True,
    )

    # Amounts in kobo
    total_amount: Mapped[int] = mapped_column(BigInteger, nullable=False)  # sum of lines
    custom_amount: Mapped[int | None] = mapped_column(BigInteger)  # negotiated override

    status: Mapped[InvoiceStatus] = mapped_column(
        String(20),
        default=InvoiceStatus.DRAFT,
        nullable=False,
    )
    due_date: Mapped[date] = mapped_column(Date, nullable=False)
    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    email_sent: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    email_sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    notes: Mapped[str | None] = mapped_column(Text)

    # Relationships
    school: Mapped["School"] = relationship("School", back_populates="invoices")
    template: Mapped["InvoiceTemplate | None"] = relationship("InvoiceTemplate")
    lines: Mapped[list["InvoiceLine"]] = relationship(
        "InvoiceLine",
        back_populates="invoice",
        order_by="InvoiceLine.position",
    )

    @property
    def subtotal(self) -> int:
        """Sum of line totals."""
        return sum(line.total for line in self.lines)

    @property
    def amount_due(self) -> int:
        """Custom amount when negotiated, otherwise the computed total."""
        if self.custom_amount is not None:
            return self.custom_amount
        return self.total_amount

    @property
    def features(self) -> list[dict]:
        """Snapshot of invoiced features, derived from the lines."""
        return [
            {
                "feature_id": line.feature_id,
                "quantity": line.quantity,
                "unit_price": line.unit_price,
                "unit_measurement": line.unit_measurement,
                "negotiated_price": line.negotiated_price,
                "start_date": line.start_date,
                "end_date": line.end_date,
            }
            for line in self.lines
        ]

    def can_transition_to(self, target: InvoiceStatus) -> bool:
        """Check the lifecycle table."""
        return target in INVOICE_TRANSITIONS[InvoiceStatus(self.status)]

    def __repr__(self) -> str:
        return f"<Invoice(id={self.id}, number={self.invoice_number}, status={self.status})>"


class InvoiceLine(BaseModel):
    """One invoiced feature."""

    __tablename__ = "invoice_lines"

    invoice_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("invoices.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    feature_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("features.id"),
        nullable=False,
    )
    position: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    description: Mapped[str] = mapped_column(String(255), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    unit_price: Mapped[int] = mapped_column(BigInteger, nullable=False)
    unit_measurement: Mapped[PricingType] = mapped_column(String(20), nullable=False)
    negotiated_price: Mapped[int | None] = mapped_column(BigInteger)
    start_date: Mapped[date | None] = mapped_column(Date)
    end_date: Mapped[date | None] = mapped_column(Date)
    total: Mapped[int] = mapped_column(BigInteger, nullable=False)

    invoice: Mapped["Invoice"] = relationship("Invoice", back_populates="lines")
    feature: Mapped["Feature"] = relationship("Feature")

    def __repr__(self) -> str:
        return f"<InvoiceLine(id={self.id}, feature={self.feature_id}, total={self.total})>"


class InvoiceTemplate(BaseModel):
    """Presentation template for invoices; global when school_id is NULL."""

    __tablename__ = "invoice_templates"

    school_id: Mapped[UUID | None] = mapped_column(
        Uuid,
        ForeignKey("schools.id", ondelete="CASCADE"),
        nullable=True,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    template_type: Mapped[str] = mapped_column(String(20), default="modern", nullable=False)
    primary_color: Mapped[str] = mapped_column(String(20), default="#2563eb", nullable=False)
    accent_color: Mapped[str] = mapped_column(String(20), default="#64748b", nullable=False)
    logo_url: Mapped[str | None] = mapped_column(String(500))
    footer_text: Mapped[str | None] = mapped_column(Text)
    is_default: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    def __repr__(self) -> str:
        return f"<InvoiceTemplate(id={self.id}, name={self.name})>"


class InvoiceAsset(BaseModel):
    """Image used on invoices (logo, signature, watermark); global when school_id is NULL."""

    __tablename__ = "invoice_assets"

    school_id: Mapped[UUID | None] = mapped_column(
        Uuid,
        ForeignKey("schools.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    type: Mapped[str] = mapped_column(String(20), default="logo", nullable=False)
    url: Mapped[str] = mapped_column(String(500), nullable=False)
    size: Mapped[int | None] = mapped_column(Integer)  # bytes
    mime_type: Mapped[str | None] = mapped_column(String(100))

    def __repr__(self) -> str:
        return f"<InvoiceAsset(id={self.id}, name={self.name}, type={self.type})>"
