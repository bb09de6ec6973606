"""API routes package."""

from vault.routes.file_routes import router as file_router
from vault.routes.interaction_routes import router as interaction_router

__all__ = ["file_router", "interaction_router"]
