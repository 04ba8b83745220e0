"""
Pydantic schemas for property image requests and responses.
"""

from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional
from datetime import datetime


class PropertyImageUpdate(BaseModel):
    """Schema for updating image metadata."""

    display_order: Optional[int] = Field(None, ge=0, description="Display order for image gallery")
    is_primary: Optional[bool] = Field(None, description="Make this the cover image")


class PropertyImageResponse(BaseModel):
    """Schema for property image response."""

    model_config = ConfigDict(from_attributes=True)

    id: str = Field(..., description="Image unique identifier")
    property_id: str = Field(..., description="ID of the property this image belongs to")
    filename: str = Field(..., description="Original filename", examples=["living_room.jpg"])
    file_path: str = Field(..., description="Path relative to the upload directory")
    url: str = Field(..., description="Public URL of the image", examples=["/uploads/properties/abc/1.jpg"])
    file_size: int = Field(..., description="File size in bytes", examples=[1024000])
    file_size_mb: float = Field(..., description="File size in megabytes", examples=[0.98])
    mime_type: str = Field(..., description="MIME type of the image file", examples=["image/jpeg"])
    width: Optional[int] = Field(None, description="Image width in pixels")
    height: Optional[int] = Field(None, description="Image height in pixels")
    is_primary: bool = Field(..., description="Whether this is the cover image")
    display_order: int = Field(..., description="Display order for image gallery")
    created_at: datetime
    updated_at: datetime


class PropertyImageListResponse(BaseModel):
    images: List[PropertyImageResponse] = Field(..., description="Images of the property")
    total: int = Field(..., description="Total number of images for the property")
    primary_image: Optional[PropertyImageResponse] = Field(None, description="Cover image")


class ImageUploadResponse(BaseModel):
    success: bool = Field(..., description="Whether the upload was successful")
    message: str = Field(..., examples=["Image uploaded successfully"])
    image: PropertyImageResponse


class MultipleImageUploadResponse(BaseModel):
    """Schema for multiple image upload response; failures do not stop the batch."""

    success: bool = Field(..., description="Whether all uploads were successful")
    message: str = Field(..., examples=["3 images uploaded successfully"])
    images: List[PropertyImageResponse] = Field(..., description="Uploaded images")
    uploaded_count: int = Field(..., description="Number of successfully uploaded images")
    failed_count: int = Field(0, description="Number of failed uploads")
    errors: List[str] = Field(default_factory=list, description="Error messages for failed uploads")


class PropertyVideoResponse(BaseModel):
    """Walkthrough video of a property, as kept under media.videos."""

    property_id: str = Field(..., description="ID of the property this video belongs to")
    url: str = Field(..., description="Public URL of the video", examples=["/uploads/properties/abc/videos/1.mp4"])
    file_name: str = Field(..., description="Original filename", examples=["walkthrough.mp4"])
    file_size: int = Field(..., description="File size in bytes")
    mime_type: str = Field(..., description="MIME type of the video", examples=["video/mp4"])
    uploaded_at: Optional[datetime] = None

    @classmethod
    def from_entry(cls, property_id, entry: dict) -> "PropertyVideoResponse":
        return cls(
            property_id=str(property_id),
            url=entry["url"],
            file_name=entry.get("fileName") or "",
            file_size=entry.get("fileSize") or 0,
            mime_type=entry.get("mimeType") or "",
            uploaded_at=entry.get("uploadedAt"),
        )
