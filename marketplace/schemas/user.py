"""
Pydantic schemas for user accounts and account management.
"""

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator
from typing import Dict, List, Optional
from datetime import datetime
from marketplace.models.user import UserRole


class UserResponse(BaseModel):
    """User response schema (excluding sensitive data)."""

    model_config = ConfigDict(from_attributes=True)

    id: str = Field(..., description="User's unique identifier", examples=["123e4567-e89b-12d3-a456-426614174000"])
    email: EmailStr = Field(..., description="User's email address", examples=["owner@example.com"])
    full_name: str = Field(..., description="User's full name", examples=["Asha Rao"])
    phone: Optional[str] = Field(None, description="Contact phone", examples=["9876543210"])
    role: UserRole = Field(..., description="User's role")
    is_active: bool = Field(..., description="Whether the user account is active")
    created_at: datetime
    updated_at: datetime


class UserListResponse(BaseModel):
    users: List[UserResponse]
    total: int = Field(..., ge=0)
    page: int = Field(..., ge=1)
    page_size: int = Field(..., ge=1)
    total_pages: int = Field(..., ge=0)


class PasswordChangeRequest(BaseModel):
    """Schema for changing the current user's password."""

    current_password: str = Field(..., min_length=1, description="Current password")
    new_password: str = Field(..., min_length=8, max_length=128, description="New password (minimum 8 characters)")
    confirm_password: str = Field(..., description="Repeat of the new password")

    @field_validator('new_password')
    @classmethod
    def validate_new_password(cls, v):
        """Require at least one letter and one digit."""
        if not any(c.isalpha() for c in v):
            raise ValueError("Password must contain at least one letter")
        if not any(c.isdigit() for c in v):
            raise ValueError("Password must contain at least one number")
        return v

    @model_validator(mode='after')
    def passwords_match(self):
        if self.new_password != self.confirm_password:
            raise ValueError("Passwords do not match")
        if self.new_password == self.current_password:
            raise ValueError("New password must be different from the current password")
        return self


class UserRoleUpdate(BaseModel):
    role: UserRole = Field(..., description="New role for the user")


class UserStatusUpdate(BaseModel):
    is_active: bool = Field(..., description="Activate or deactivate the account")


class UserStatsResponse(BaseModel):
    total_users: int
    active_users: int
    inactive_users: int
    users_by_role: Dict[str, int]
