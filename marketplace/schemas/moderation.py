"""
Schemas for the moderation dashboard and the coordinate sync.
"""

from pydantic import BaseModel, Field, field_validator
from typing import List, Optional


class RejectRequest(BaseModel):
    reason: str = Field(..., min_length=5, max_length=1000, description="Shown to the owner")

    @field_validator('reason')
    @classmethod
    def validate_reason(cls, v):
        if not v.strip():
            raise ValueError("Rejection reason cannot be empty")
        return v.strip()


class ModerationStatsResponse(BaseModel):
    total: int
    pending: int = Field(..., description="Drafts awaiting review")
    approved: int = Field(..., description="Published listings")
    rejected: int
    archived: int
    recent: int = Field(..., description="Created within the recent window")
    recent_hours: int
    unique_cities: int
    unique_owners: int


class CoordinatesResponse(BaseModel):
    property_id: str
    latitude: float
    longitude: float
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    updated_at: str


class PropertySyncResponse(BaseModel):
    property_id: str
    synced: bool
    reason: Optional[str] = Field(None, description="Why the property was skipped")
    coordinates: Optional[CoordinatesResponse] = None


class SyncErrorResponse(BaseModel):
    property_id: str
    error: str


class SyncResultResponse(BaseModel):
    synced_count: int
    total_properties: int
    skipped: int
    errors: List[SyncErrorResponse]


class MigrationStatsResponse(BaseModel):
    total: int
    migrated: int
    missing: int
    percentage: float


class MapMarkerResponse(BaseModel):
    property_id: str
    code: str
    title: str
    price: float
    latitude: float
    longitude: float
