"""
Schemas for liked properties.
"""

from pydantic import BaseModel, Field
from typing import List
from marketplace.schemas.property import PropertyResponse


class LikeStatusResponse(BaseModel):
    property_id: str
    liked: bool = Field(..., description="Whether the current user likes the property")
    like_count: int = Field(..., ge=0)


class LikedPropertyIdsResponse(BaseModel):
    property_ids: List[str]


class LikedPropertiesResponse(BaseModel):
    properties: List[PropertyResponse]
    total: int
    page: int
    page_size: int
