"""API v1 router aggregating all route modules."""

from fastapi import APIRouter

from app.api.v1.routes import (
    auth,
    features,
    invoice_assets,
    invoice_templates,
    invoices,
    school_features,
    schools,
    settings,
    tenant,
)

api_router = APIRouter()

api_router.include_router(auth.router)
api_router.include_router(features.router)
api_router.include_router(school_features.router)
api_router.include_router(schools.router)
api_router.include_router(invoices.router)
api_router.include_router(invoice_templates.router)
api_router.include_router(invoice_assets.router)
api_router.include_router(settings.router)
api_router.include_router(tenant.router)
