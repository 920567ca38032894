from fastapi import APIRouter

from fieldbooks.app.api.v1.endpoints import dashboard

api_router = APIRouter(prefix="/api/v1")

api_router.include_router(dashboard.router, prefix="/dashboard", tags=["dashboard"])
