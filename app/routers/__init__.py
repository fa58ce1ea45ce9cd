"""API routers for CreatorFlow."""

from app.routers.auth import router as auth_router
from app.routers.generate import router as generate_router
from app.routers.integrations import router as integrations_router
from app.routers.research import router as research_router

__all__ = [
    "auth_router",
    "generate_router",
    "integrations_router",
    "research_router",
]
