"""School schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

from app.models.school import BranchStatus, PaymentStatus, SchoolStatus, SchoolType
from app.schemas.validators import Email, FeatureKey, PhoneNumber, ShortName


class SchoolCreate(BaseModel):
    """Schema for provisioning a new school."""

    name: str = Field(..., min_length=1, max_length=255)
    short_name: ShortName
    abbreviation: str | None = Field(None, max_length=50)
    motto: str | None = None
    state: str | None = Field(None, max_length=100)
    lga: str | None = Field(None, max_length=100)
    address: str | None = Field(None, max_length=500)
    phones: list[PhoneNumber] = []
    email: Email | None = None
    type: SchoolType = SchoolType.K12

    # Optional school admin account
    admin_name: str | None = Field(None, min_length=1, max_length=200)
    admin_email: Email | None = None

    # Feature keys enabled at provisioning time
    initial_features: list[FeatureKey] = []

    @model_validator(mode="after")
    def validate_admin(self) -> "SchoolCreate":
        """Admin name and email go together."""
        if (self.admin_name is None) != (self.admin_email is None):
            raise ValueError("admin_name and admin_email must be provided together")
        return self


class SchoolUpdate(BaseModel):
    """Schema for updating a school."""

    name: str | None = Field(None, min_length=1, max_length=255)
    abbreviation: str | None = Field(None, max_length=50)
    motto: str | None = None
    state: str | None = Field(None, max_length=100)
    lga: str | None = Field(None, max_length=100)
    address: str | None = Field(None, max_length=500)
    phones: list[PhoneNumber] | None = None
    email: Email | None = None
    type: SchoolType | None = None
    status: SchoolStatus | None = None


class SchoolPaymentStatusUpdate(BaseModel):
    """Schema for setting a school's payment status."""

    payment_status: PaymentStatus
    next_payment_due: datetime | None = None


class SchoolResponse(BaseModel):
    """School response schema."""

    id: UUID
    name: str
    short_name: str
    abbreviation: str | None
    motto: str | None
    state: str | None
    lga: str | None
    address: str | None
    phones: list[str]
    email: str | None
    logo_url: str | None
    type: SchoolType
    status: SchoolStatus
    main_branch_id: UUID | None
    payment_status: PaymentStatus
    next_payment_due: datetime | None
    access_blocked_at: datetime | None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class SchoolListResponse(BaseModel):
    """Paginated list of schools."""

    items: list[SchoolResponse]
    total: int
    skip: int
    limit: int


class AccessStatusResponse(BaseModel):
    """Outcome of the payment access gate for a school."""

    allowed: bool
    payment_status: PaymentStatus
    days_overdue: int
    grace_period_days: int


class CommunicationChannel(BaseModel):
    """Whether a delivery channel can reach a school."""

    available: bool
    address: str | None = None
    phones: list[str] = []


class CommunicationSettingsResponse(BaseModel):
    """Delivery channels usable for a school's invoices."""

    email: CommunicationChannel
    whatsapp: CommunicationChannel
    sms: CommunicationChannel


# ============== Branches ==============


class BranchCreate(BaseModel):
    """Schema for adding a branch to a school."""

    name: str = Field(..., min_length=1, max_length=255)


class BranchUpdate(BaseModel):
    """Schema for renaming a branch."""

    name: str = Field(..., min_length=1, max_length=255)


class BranchStatusUpdate(BaseModel):
    status: BranchStatus


class BranchResponse(BaseModel):
    """Branch response schema."""

    id: UUID
    school_id: UUID
    name: str
    is_main: bool
    status: BranchStatus
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class EmailCheckRequest(BaseModel):
    """Recipient of an SMTP configuration test."""

    to: Email


class MessageResponse(BaseModel):
    message: str
