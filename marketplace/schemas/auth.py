"""
Pydantic schemas for authentication requests and responses.
Handles registration, login and token refresh.
"""

from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import Optional
from marketplace.models.user import UserRole
from marketplace.schemas.user import UserResponse

SELF_SERVICE_ROLES = (UserRole.PROPERTY_OWNER, UserRole.PROPERTY_SEEKER)


class RegisterRequest(BaseModel):
    """Registration schema; only owners and seekers can sign themselves up."""

    email: EmailStr = Field(..., description="User's email address", examples=["owner@example.com"])
    password: str = Field(..., min_length=8, max_length=128, description="Password (minimum 8 characters)")
    full_name: str = Field(..., min_length=2, max_length=255, description="User's full name")
    phone: Optional[str] = Field(None, max_length=20, description="Contact phone")
    role: UserRole = Field(UserRole.PROPERTY_SEEKER, description="property_owner or property_seeker")

    @field_validator('email')
    @classmethod
    def normalize_email(cls, v):
        return v.lower().strip()

    @field_validator('full_name')
    @classmethod
    def validate_full_name(cls, v):
        if not v.strip():
            raise ValueError("Full name cannot be empty")
        return " ".join(v.split())

    @field_validator('password')
    @classmethod
    def validate_password(cls, v):
        """Require at least one letter and one digit."""
        if not any(c.isalpha() for c in v):
            raise ValueError("Password must contain at least one letter")
        if not any(c.isdigit() for c in v):
            raise ValueError("Password must contain at least one number")
        return v

    @field_validator('phone')
    @classmethod
    def validate_phone(cls, v):
        if v is None:
            return v
        digits = "".join(c for c in v if c.isdigit())
        if len(digits) < 10:
            raise ValueError("Phone number must have at least 10 digits")
        return v.strip()

    @field_validator('role')
    @classmethod
    def validate_role(cls, v):
        if v not in SELF_SERVICE_ROLES:
            raise ValueError("Only property_owner and property_seeker accounts can self-register")
        return v


class LoginRequest(BaseModel):
    """Login request schema."""

    email: EmailStr = Field(..., description="User's email address", examples=["owner@example.com"])
    password: str = Field(..., min_length=8, max_length=128, description="User's password")

    @field_validator('email')
    @classmethod
    def normalize_email(cls, v):
        return v.lower().strip()


class TokenResponse(BaseModel):
    """Token pair issued on login."""

    access_token: str = Field(..., description="JWT access token")
    refresh_token: str = Field(..., description="JWT refresh token")
    token_type: str = Field(default="bearer", description="Token type")
    expires_in: int = Field(..., description="Access token expiration time in seconds", examples=[1800])


class LoginResponse(TokenResponse):
    user: UserResponse


class RefreshTokenRequest(BaseModel):
    refresh_token: str = Field(..., description="Valid refresh token")


class AccessTokenResponse(BaseModel):
    """Access token issued on refresh."""

    access_token: str = Field(..., description="New JWT access token")
    token_type: str = Field(default="bearer", description="Token type")
    expires_in: int = Field(..., description="Access token expiration time in seconds", examples=[1800])
