"""API routes package."""

from driver.routes.storage_routes import router as storage_router

__all__ = ["storage_router"]
