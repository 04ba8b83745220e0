"""
Database models for the Property Marketplace API.
"""

from marketplace.models.user import User, UserRole, ADMIN_ROLES, STAFF_ROLES
from marketplace.models.property import Property, PropertyStatus, PUBLIC_TAG
from marketplace.models.image import PropertyImage
from marketplace.models.favorite import PropertyLike
from marketplace.models.coordinates import PropertyCoordinates
from marketplace.models.visit import PropertyVisit, PropertyReport, VisitStatus, ReportStatus

__all__ = [
    "User",
    "UserRole",
    "ADMIN_ROLES",
    "STAFF_ROLES",
    "Property",
    "PropertyStatus",
    "PUBLIC_TAG",
    "PropertyImage",
    "PropertyLike",
    "PropertyCoordinates",
    "PropertyVisit",
    "PropertyReport",
    "VisitStatus",
    "ReportStatus",
]
