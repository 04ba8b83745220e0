"""
Service layer for business logic implementation.
Services own permissions and lifecycle rules; repositories only query.
"""

from .auth import AuthService
from .property import PropertyService
from .image import ImageService
from .favorite import FavoriteService
from .visit import VisitService
from .moderation import ModerationService
from .coordinates import CoordinateService, SyncResult, PropertySync
from .error_handler import ErrorHandlerService

__all__ = [
    "AuthService",
    "PropertyService",
    "ImageService",
    "FavoriteService",
    "VisitService",
    "ModerationService",
    "CoordinateService",
    "SyncResult",
    "PropertySync",
    "ErrorHandlerService",
]
