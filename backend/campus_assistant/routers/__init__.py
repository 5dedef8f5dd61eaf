"""API routers"""

from fastapi import APIRouter

from . import admin, webhook

api_router = APIRouter()

api_router.include_router(admin.router)

__all__ = ["api_router", "webhook"]
