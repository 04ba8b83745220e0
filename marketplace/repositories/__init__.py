"""
Repository layer for data access.
"""

from marketplace.repositories.base import BaseRepository
from marketplace.repositories.user import UserRepository
from marketplace.repositories.property import PropertyRepository, PropertySearchFilters
from marketplace.repositories.image import ImageRepository
from marketplace.repositories.favorite import FavoriteRepository
from marketplace.repositories.coordinates import CoordinatesRepository
from marketplace.repositories.visit import VisitRepository, ReportRepository

__all__ = [
    "BaseRepository",
    "UserRepository",
    "PropertyRepository",
    "PropertySearchFilters",
    "ImageRepository",
    "FavoriteRepository",
    "CoordinatesRepository",
    "VisitRepository",
    "ReportRepository",
]
