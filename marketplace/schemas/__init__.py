"""
Pydantic schemas for request/response validation.
"""

from marketplace.schemas.auth import (
    RegisterRequest,
    LoginRequest,
    LoginResponse,
    TokenResponse,
    RefreshTokenRequest,
    AccessTokenResponse,
)
from marketplace.schemas.user import (
    UserResponse,
    UserListResponse,
    PasswordChangeRequest,
    UserRoleUpdate,
    UserStatusUpdate,
    UserStatsResponse,
)
from marketplace.schemas.property import (
    PropertyCreate,
    PropertyUpdate,
    StepSaveRequest,
    PropertyResponse,
    PropertyListResponse,
    PropertySearchFilters,
    SimilarPropertyResponse,
    NearbyPropertyResponse,
    PropertyStatsResponse,
)
from marketplace.schemas.image import (
    PropertyImageUpdate,
    PropertyImageResponse,
    PropertyImageListResponse,
    ImageUploadResponse,
    MultipleImageUploadResponse,
)
from marketplace.schemas.error import ErrorDetail, ErrorResponse, APIErrorResponse

__all__ = [
    "RegisterRequest",
    "LoginRequest",
    "LoginResponse",
    "TokenResponse",
    "RefreshTokenRequest",
    "AccessTokenResponse",
    "UserResponse",
    "UserListResponse",
    "PasswordChangeRequest",
    "UserRoleUpdate",
    "UserStatusUpdate",
    "UserStatsResponse",
    "PropertyCreate",
    "PropertyUpdate",
    "StepSaveRequest",
    "PropertyResponse",
    "PropertyListResponse",
    "PropertySearchFilters",
    "SimilarPropertyResponse",
    "NearbyPropertyResponse",
    "PropertyStatsResponse",
    "PropertyImageUpdate",
    "PropertyImageResponse",
    "PropertyImageListResponse",
    "ImageUploadResponse",
    "MultipleImageUploadResponse",
    "ErrorDetail",
    "ErrorResponse",
    "APIErrorResponse",
]
