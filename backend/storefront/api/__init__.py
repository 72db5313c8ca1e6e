"""Storefront API routers."""

from storefront.api.auth import router as auth_router
from storefront.api.health import router as health_router

__all__ = ["auth_router", "health_router"]
