"""API v1 router."""

from fastapi import APIRouter

from printbrain.api.v1.endpoints import analytics, control, dashboard, storefront

api_router = APIRouter()

api_router.include_router(storefront.router, prefix="/storefront", tags=["storefront"])
api_router.include_router(analytics.router, tags=["analytics"])
api_router.include_router(dashboard.router, prefix="/dashboard", tags=["dashboard"])
api_router.include_router(control.router, prefix="/control", tags=["control"])
