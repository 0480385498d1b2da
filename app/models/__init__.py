# Database models

from app.models.school import (
    Branch,
    BranchStatus,
    PaymentStatus,
    School,
    SchoolStatus,
    SchoolType,
)
from app.models.user import User
from app.models.feature import Feature, PricingType, SchoolFeature, SchoolFeatureSetup
from app.models.invoice import (
    Invoice,
    InvoiceAsset,
    InvoiceLine,
    InvoiceStatus,
    InvoiceTemplate,
)

__all__ = [
    "Branch",
    "BranchStatus",
    "PaymentStatus",
    "School",
    "SchoolStatus",
    "SchoolType",
    "User",
    "Feature",
    "PricingType",
    "SchoolFeature",
    "SchoolFeatureSetup",
    "Invoice",
    "InvoiceAsset",
    "InvoiceLine",
    "InvoiceStatus",
    "InvoiceTemplate",
]
