"""
PropertyImage model for listing photos.
Stores file metadata; the image list is mirrored into the details blob media section.
"""

from sqlalchemy import String, Integer, Boolean, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship
from marketplace.database import Base
import uuid
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from marketplace.models.property import Property


class PropertyImage(Base):
    """Uploaded photo of a property."""

    __tablename__ = "property_images"

    property_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("properties.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="ID of the property this image belongs to"
    )

    # File information
    filename: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="Original filename of the uploaded image"
    )

    file_path: Mapped[str] = mapped_column(
        String(500),
        nullable=False,
        unique=True,
        comment="Relative path to the stored image file"
    )

    file_size: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        comment="File size in bytes"
    )

    mime_type: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        comment="MIME type of the image file"
    )

    width: Mapped[Optional[int]] = mapped_column(
        Integer,
        nullable=True,
        comment="Image width in pixels"
    )

    height: Mapped[Optional[int]] = mapped_column(
        Integer,
        nullable=True,
        comment="Image height in pixels"
    )

    is_primary: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        index=True,
        comment="Whether this is the cover image of the listing"
    )

    display_order: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        comment="Display order for image gallery"
    )

    property_rel: Mapped["Property"] = relationship(
        "Property",
        back_populates="images",
        lazy="noload"
    )

    def __repr__(self) -> str:
        return f"<PropertyImage(id={self.id}, property_id={self.property_id}, filename={self.filename})>"

    @property
    def file_size_mb(self) -> float:
        return round(self.file_size / (1024 * 1024), 2)

    @property
    def url(self) -> str:
        """Public URL the static files mount serves the image under."""
        return "/uploads/" + self.file_path.replace("\\", "/").lstrip("/")

    def to_media_entry(self) -> dict:
        """Entry stored under media.photos.images in the details blob."""
        return {
            "id": str(self.id),
            "url": self.url,
            "isPrimary": self.is_primary,
            "displayOrder": self.display_order,
        }

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "property_id": str(self.property_id),
            "filename": self.filename,
            "file_path": self.file_path,
            "url": self.url,
            "file_size": self.file_size,
            "file_size_mb": self.file_size_mb,
            "mime_type": self.mime_type,
            "width": self.width,
            "height": self.height,
            "is_primary": self.is_primary,
            "display_order": self.display_order,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


property_images_index = Index(
    'idx_property_images_property_order',
    PropertyImage.property_id,
    PropertyImage.is_primary.desc(),
    PropertyImage.display_order.asc()
)
