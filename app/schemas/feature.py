"""Feature catalog and entitlement schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.models.feature import PricingType
from app.schemas.validators import FeatureKey


class MenuLink(BaseModel):
    """A navigation entry contributed by a feature."""

    name: str = Field(..., min_length=1, max_length=100)
    href: str = Field(..., min_length=1, max_length=500)
    icon: str = "fas fa-home"
    enabled: bool = True


class FeatureCreate(BaseModel):
    """Schema for creating a feature. Key is derived from name when omitted."""

    key: FeatureKey | None = None
    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    price: int = Field(default=0, ge=0, description="Price in kobo")
    pricing_type: PricingType = PricingType.PER_SCHOOL
    category: str = Field(default="general", max_length=50)
    is_core: bool = False
    requires_date_range: bool = False
    menu_links: list[MenuLink] = []


class FeatureUpdate(BaseModel):
    """Schema for updating a feature. The key cannot be changed."""

    name: str | None = Field(None, min_length=1, max_length=255)
    description: str | None = None
    price: int | None = Field(None, ge=0)
    pricing_type: PricingType | None = None
    category: str | None = Field(None, max_length=50)
    is_core: bool | None = None
    requires_date_range: bool | None = None
    is_active: bool | None = None

    model_config = ConfigDict(extra="forbid")


class FeatureMenuLinksUpdate(BaseModel):
    """Replace a feature's default menu links."""

    menu_links: list[MenuLink]


class FeatureResponse(BaseModel):
    """Feature response schema."""

    id: UUID
    key: str
    name: str
    description: str | None
    price: int
    pricing_type: PricingType
    category: str
    is_core: bool
    requires_date_range: bool
    menu_links: list[MenuLink]
    is_active: bool
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


# ============== Entitlements ==============


class SchoolFeatureToggle(BaseModel):
    """Enable or disable one feature for a school."""

    feature_id: UUID
    enabled: bool = True


class SchoolFeatureBulk(BaseModel):
    """Enable several features for one school."""

    feature_ids: list[UUID] = Field(..., min_length=1)


class BulkAssignRequest(BaseModel):
    """Enable every feature for every school in the lists."""

    school_ids: list[UUID] = Field(..., min_length=1)
    feature_ids: list[UUID] = Field(..., min_length=1)


class BulkAssignResponse(BaseModel):
    """Number of (school, feature) pairs enabled."""

    assigned_count: int


class SchoolFeatureResponse(BaseModel):
    """Entitlement row joined with feature detail."""

    id: UUID
    school_id: UUID
    feature_id: UUID
    enabled: bool
    feature: FeatureResponse
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class FeatureSetupUpdate(BaseModel):
    """Per-school menu link customization for one feature."""

    feature_id: UUID
    menu_links: list[MenuLink]


class FeatureSetupResponse(BaseModel):
    """Stored per-school menu link customization."""

    school_id: UUID
    feature_id: UUID
    menu_links: list[MenuLink]

    model_config = ConfigDict(from_attributes=True)


class SchoolFeatureMenu(BaseModel):
    """Enabled feature with its effective menu links."""

    feature_id: UUID
    key: str
    name: str
    menu_links: list[MenuLink]
    customized: bool
