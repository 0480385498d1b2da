"""Invoice and invoice template schemas."""

from datetime import date, datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.models.feature import PricingType
from app.models.invoice import InvoiceStatus
from app.schemas.validators import Email, PhoneNumber


class DeliveryMethod(str, Enum):
    """Channels an invoice can be sent through."""

    EMAIL = "email"
    WHATSAPP = "whatsapp"
    SMS = "sms"
    BOTH = "both"  # email + whatsapp


class InvoiceLineCreate(BaseModel):
    """One selected feature. Unset prices fall back to the catalog."""

    feature_id: UUID
    quantity: int = 1
    unit_price: int | None = None
    unit_measurement: PricingType | None = None
    negotiated_price: int | None = None
    description: str | None = Field(None, max_length=255)
    start_date: date | None = None
    end_date: date | None = None


class InvoiceCreate(BaseModel):
    """Schema for creating an invoice."""

    school_id: UUID
    lines: list[InvoiceLineCreate] = []
    due_date: date
    custom_amount: int | None = Field(None, ge=0, description="Overrides the computed total")
    template_id: UUID | None = None
    notes: str | None = None


class InvoiceUpdate(BaseModel):
    """Schema for updating a DRAFT invoice."""

    lines: list[InvoiceLineCreate] | None = None
    due_date: date | None = None
    custom_amount: int | None = Field(None, ge=0)
    template_id: UUID | None = None
    notes: str | None = None


class InvoiceRecipients(BaseModel):
    """Overrides for the school's contact details."""

    email: Email | None = None
    phone: PhoneNumber | None = None


class InvoiceSendRequest(BaseModel):
    """Schema for delivering an invoice."""

    method: DeliveryMethod = DeliveryMethod.EMAIL
    subject: str | None = Field(None, max_length=255)
    message: str | None = None
    recipients: InvoiceRecipients = InvoiceRecipients()


class DeliveryResult(BaseModel):
    """Per-channel outcome of a send."""

    email: bool = False
    whatsapp: bool = False
    sms: bool = False
    errors: list[str] = []

    @property
    def any_succeeded(self) -> bool:
        return self.email or self.whatsapp or self.sms


class SchoolInfo(BaseModel):
    """Nested school info for invoice response."""

    id: UUID
    name: str
    short_name: str
    email: str | None = None

    model_config = ConfigDict(from_attributes=True)


class InvoiceLineResponse(BaseModel):
    """Schema for invoice line response."""

    id: UUID
    feature_id: UUID
    position: int
    description: str
    quantity: int
    unit_price: int
    unit_measurement: PricingType
    negotiated_price: int | None
    start_date: date | None
    end_date: date | None
    total: int

    model_config = ConfigDict(from_attributes=True)


class InvoiceFeatureSnapshot(BaseModel):
    """Pricing snapshot of one invoiced feature."""

    feature_id: UUID
    quantity: int
    unit_price: int
    unit_measurement: PricingType
    negotiated_price: int | None
    start_date: date | None
    end_date: date | None


class InvoiceResponse(BaseModel):
    """Schema for invoice response."""

    id: UUID
    invoice_number: str
    school_id: UUID
    school: SchoolInfo | None = None
    template_id: UUID | None
    lines: list[InvoiceLineResponse] = []
    features: list[InvoiceFeatureSnapshot] = []
    subtotal: int
    total_amount: int
    custom_amount: int | None
    amount_due: int
    status: InvoiceStatus
    due_date: date
    paid_at: datetime | None
    email_sent: bool
    email_sent_at: datetime | None
    notes: str | None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class InvoiceListResponse(BaseModel):
    """Schema for paginated invoice list."""

    items: list[InvoiceResponse]
    total: int
    skip: int
    limit: int


class InvoiceSendResponse(BaseModel):
    """Response for invoice delivery."""

    message: str
    success: bool
    results: DeliveryResult
    invoice: InvoiceResponse


class OverdueUpdateResponse(BaseModel):
    """Response for the overdue sweep."""

    updated_count: int


class BillingSummary(BaseModel):
    """Platform billing statistics."""

    total_schools: int
    paid_schools: int
    unpaid_schools: int
    invoices_by_status: dict[InvoiceStatus, int]
    revenue_this_month: int
    outstanding_amount: int


# ============== Templates ==============


class InvoiceTemplateCreate(BaseModel):
    """Schema for creating an invoice template."""

    school_id: UUID | None = None  # None = global
    name: str = Field(..., min_length=1, max_length=255)
    template_type: str = Field(default="modern", max_length=20)
    primary_color: str = Field(default="#2563eb", pattern=r"^#[0-9a-fA-F]{6}$")
    accent_color: str = Field(default="#64748b", pattern=r"^#[0-9a-fA-F]{6}$")
    logo_url: str | None = Field(None, max_length=500)
    footer_text: str | None = None
    is_default: bool = False


class InvoiceTemplateUpdate(BaseModel):
    """Schema for updating an invoice template. Ownership cannot change."""

    name: str | None = Field(None, min_length=1, max_length=255)
    template_type: str | None = Field(None, max_length=20)
    primary_color: str | None = Field(None, pattern=r"^#[0-9a-fA-F]{6}$")
    accent_color: str | None = Field(None, pattern=r"^#[0-9a-fA-F]{6}$")
    logo_url: str | None = Field(None, max_length=500)
    footer_text: str | None = None
    is_default: bool | None = None

    model_config = ConfigDict(extra="forbid")


class InvoiceTemplateResponse(BaseModel):
    """Schema for invoice template response."""

    id: UUID
    school_id: UUID | None
    name: str
    template_type: str
    primary_color: str
    accent_color: str
    logo_url: str | None
    footer_text: str | None
    is_default: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


# ============== Assets ==============


class InvoiceAssetType(str, Enum):
    """Where an asset is placed on an invoice."""

    LOGO = "logo"
    SIGNATURE = "signature"
    WATERMARK = "watermark"
    BACKGROUND = "background"


class InvoiceAssetCreate(BaseModel):
    """Schema for registering an asset that is already hosted."""

    school_id: UUID | None = None  # None = global
    name: str = Field(..., min_length=1, max_length=255)
    type: InvoiceAssetType = InvoiceAssetType.LOGO
    url: str = Field(..., max_length=500, pattern=r"^https?://")
    size: int | None = Field(None, ge=0)
    mime_type: str | None = Field(None, max_length=100)


class InvoiceAssetUpdate(BaseModel):
    """Schema for updating an invoice asset."""

    name: str | None = Field(None, min_length=1, max_length=255)
    type: InvoiceAssetType | None = None
    url: str | None = Field(None, max_length=500, pattern=r"^https?://")

    model_config = ConfigDict(extra="forbid")


class InvoiceAssetResponse(BaseModel):
    id: UUID
    school_id: UUID | None
    name: str
    type: InvoiceAssetType
    url: str
    size: int | None
    mime_type: str | None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
