"""
API route handlers for the Property Marketplace API.
"""

from .auth import router as auth_router
from .flows import router as flows_router
from .properties import router as properties_router
from .images import router as images_router, video_router
from .favorites import router as favorites_router
from .visits import router as visits_router
from .admin import router as admin_router

__all__ = [
    "auth_router",
    "flows_router",
    "properties_router",
    "images_router",
    "video_router",
    "favorites_router",
    "visits_router",
    "admin_router",
]
