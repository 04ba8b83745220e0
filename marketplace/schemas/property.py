"""
Pydantic schemas for property requests and responses.
Covers wizard steps, lifecycle updates, search filters and the listing views.
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from typing import Any, Dict, List, Optional
from datetime import datetime
from decimal import Decimal
from marketplace.flows.definitions import FlowType
from marketplace.models.property import PropertyStatus
from marketplace.schemas.user import UserResponse
from marketplace.schemas.image import PropertyImageResponse

MAX_TAGS = 20


def _clean_tags(tags: Optional[List[str]]) -> Optional[List[str]]:
    if tags is None:
        return None
    cleaned = []
    for tag in tags:
        tag = tag.strip().lower()
        if tag and tag not in cleaned:
            cleaned.append(tag)
    if len(cleaned) > MAX_TAGS:
        raise ValueError(f"At most {MAX_TAGS} tags are allowed")
    return cleaned


class PropertyCreate(BaseModel):
    """Start a new listing in the given flow."""

    flow_type: FlowType = Field(..., description="Listing flow", examples=["residential_rent"])
    steps: Dict[str, Dict[str, Any]] = Field(
        default_factory=dict,
        description="Optional initial step data keyed by full step id"
    )
    description: Optional[str] = Field(None, max_length=5000, description="Free text description")
    tags: List[str] = Field(default_factory=list, description="Free-form tags")

    @field_validator('tags')
    @classmethod
    def validate_tags(cls, v):
        return _clean_tags(v)

    @field_validator('description')
    @classmethod
    def validate_description(cls, v):
        return v.strip() if v else v


class StepSaveRequest(BaseModel):
    """Replace the data of one wizard step."""

    data: Dict[str, Any] = Field(..., description="Field values of the step")
    validate_step: bool = Field(
        False,
        alias="validate",
        description="Reject the save when the step has invalid fields"
    )

    model_config = ConfigDict(populate_by_name=True)


class PropertyUpdate(BaseModel):
    """Update description, tags or replace the whole details blob."""

    description: Optional[str] = Field(None, max_length=5000)
    tags: Optional[List[str]] = None
    property_details: Optional[Dict[str, Any]] = Field(
        None,
        description="Full canonical details blob; replaces the stored one"
    )

    @field_validator('tags')
    @classmethod
    def validate_tags(cls, v):
        return _clean_tags(v)

    @model_validator(mode='after')
    def validate_not_empty(self):
        if self.description is None and self.tags is None and self.property_details is None:
            raise ValueError("At least one field must be provided for update")
        return self


class PropertyResponse(BaseModel):
    """Schema for property response."""

    model_config = ConfigDict(from_attributes=True)

    id: str = Field(..., description="Property unique identifier")
    code: str = Field(..., description="Six character public code", examples=["AB12CD"])
    flow_type: FlowType
    status: PropertyStatus
    title: str = Field(..., examples=["2 BHK Apartment for Rent in Bangalore"])
    description: Optional[str] = None
    price: Decimal = Field(..., description="Rent, sale price or desk price depending on the flow")
    bedrooms: Optional[int] = None
    bathrooms: Optional[int] = None
    square_feet: Optional[int] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    property_details: Dict[str, Any] = Field(default_factory=dict, description="Canonical details blob")
    owner_id: str
    created_at: datetime
    updated_at: datetime

    owner: Optional[UserResponse] = Field(None, description="Owner information (if included)")
    images: Optional[List[PropertyImageResponse]] = Field(default_factory=list)
    image_count: Optional[int] = None
    primary_image: Optional[PropertyImageResponse] = None
    like_count: Optional[int] = None
    is_liked: Optional[bool] = None


class PropertyListResponse(BaseModel):
    """Schema for paginated property list response."""

    properties: List[PropertyResponse]
    total: int = Field(..., description="Total number of properties matching the criteria")
    page: int = Field(..., description="Current page number")
    page_size: int = Field(..., description="Number of properties per page")
    total_pages: int = Field(..., description="Total number of pages")
    has_next: bool
    has_previous: bool


class PropertySearchFilters(BaseModel):
    """Search filters over published listings."""

    query: Optional[str] = Field(
        None, min_length=1, max_length=255,
        description="Text over title, description, address, city and code"
    )
    city: Optional[str] = Field(None, max_length=100)
    state: Optional[str] = Field(None, max_length=100)

    flow_type: Optional[FlowType] = Field(None, description="Exact flow filter")
    property_type: Optional[str] = Field(
        None, description="residential, commercial, land, pghostel or flatmates"
    )
    subtype: Optional[str] = Field(None, description="Search subtype such as apartment or hot_desk")
    transaction_type: Optional[str] = Field(None, description="buy or rent")

    min_price: Optional[Decimal] = Field(None, ge=0)
    max_price: Optional[Decimal] = Field(None, ge=0)
    bedrooms: Optional[int] = Field(None, ge=0, le=50, description="Minimum number of bedrooms")
    bathrooms: Optional[int] = Field(None, ge=0, le=50, description="Minimum number of bathrooms")
    min_area: Optional[int] = Field(None, gt=0)
    max_area: Optional[int] = Field(None, gt=0)
    owner_id: Optional[str] = Field(None, description="Filter by owner (admin only)")

    page: int = Field(1, ge=1)
    page_size: int = Field(20, ge=1, le=100)
    sort_by: str = Field("created_at", description="created_at, updated_at, price, title, bedrooms, square_feet")
    sort_order: str = Field("desc", description="asc or desc")

    @field_validator('transaction_type')
    @classmethod
    def validate_transaction_type(cls, v):
        if v is None:
            return v
        v = v.lower().strip()
        if v not in ('buy', 'rent', 'sale'):
            raise ValueError("Transaction type must be 'buy' or 'rent'")
        return 'buy' if v == 'sale' else v

    @field_validator('sort_by')
    @classmethod
    def validate_sort_by(cls, v):
        allowed_fields = ['created_at', 'updated_at', 'price', 'title', 'bedrooms', 'square_feet']
        if v not in allowed_fields:
            raise ValueError(f"Sort field must be one of: {', '.join(allowed_fields)}")
        return v

    @field_validator('sort_order')
    @classmethod
    def validate_sort_order(cls, v):
        if v.lower() not in ['asc', 'desc']:
            raise ValueError("Sort order must be 'asc' or 'desc'")
        return v.lower()

    @model_validator(mode='after')
    def validate_ranges(self):
        if self.min_price is not None and self.max_price is not None and self.min_price > self.max_price:
            raise ValueError("Minimum price cannot be greater than maximum price")
        if self.min_area is not None and self.max_area is not None and self.min_area > self.max_area:
            raise ValueError("Minimum area cannot be greater than maximum area")
        return self


class SimilarPropertyResponse(BaseModel):
    property: PropertyResponse
    score: float = Field(..., ge=0, le=1, description="Similarity score")


class NearbyPropertyResponse(BaseModel):
    property: PropertyResponse
    distance_km: float = Field(..., ge=0)


class PropertyStatsResponse(BaseModel):
    total_properties: int
    properties_by_status: Dict[str, int]
    properties_by_flow: Dict[str, int]
    price_statistics: Dict[str, float]
