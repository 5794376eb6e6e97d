"""API routes."""

from fastapi import APIRouter

from gamecatalog.routes import admin

api_router = APIRouter()

# Admin endpoints (counter sweeps, on-demand worker polls)
api_router.include_router(admin.router, prefix="/v1/admin", tags=["admin"])
