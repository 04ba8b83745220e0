"""
Property model for marketplace listings.
The property details blob is the source of truth; the scalar columns are
derived from it on every save so that search can filter on them.
"""

from sqlalchemy import String, Text, Integer, Numeric, JSON, Enum as SQLEnum, Index, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.dialects.postgresql import JSONB
from marketplace.database import Base
from marketplace.flows.definitions import FlowType
from decimal import Decimal
import enum
import uuid
from typing import Any, Dict, List, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from marketplace.models.user import User
    from marketplace.models.image import PropertyImage


class PropertyStatus(str, enum.Enum):
    """Listing lifecycle status."""
    DRAFT = "draft"
    PUBLISHED = "published"
    REJECTED = "rejected"
    ARCHIVED = "archived"


PUBLIC_TAG = "public"

JSONType = JSON().with_variant(JSONB(), "postgresql")


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class Property(Base):
    """
    Property listing created through the wizard.
    Holds the canonical details blob plus the searchable columns derived from it.
    """

    __tablename__ = "properties"

    owner_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="ID of the user who listed this property"
    )

    code: Mapped[str] = mapped_column(
        String(6),
        nullable=False,
        unique=True,
        index=True,
        comment="Short public property code, 6 uppercase alphanumerics"
    )

    flow_type: Mapped[FlowType] = mapped_column(
        SQLEnum(FlowType, values_callable=_enum_values),
        nullable=False,
        index=True,
        comment="Listing flow the wizard data belongs to"
    )

    status: Mapped[PropertyStatus] = mapped_column(
        SQLEnum(PropertyStatus, values_callable=_enum_values),
        nullable=False,
        default=PropertyStatus.DRAFT,
        index=True,
        comment="Listing lifecycle status"
    )

    property_details: Mapped[Dict[str, Any]] = mapped_column(
        JSONType,
        nullable=False,
        default=dict,
        comment="Canonical property details blob"
    )

    tags: Mapped[List[str]] = mapped_column(
        JSONType,
        nullable=False,
        default=list,
        comment="Free-form tags; 'public' marks approved listings"
    )

    # Derived from the details blob
    title: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        default="Untitled Property",
        index=True,
        comment="Resolved listing title"
    )

    description: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
        comment="Free text description"
    )

    price: Mapped[Decimal] = mapped_column(
        Numeric(precision=14, scale=2),
        nullable=False,
        default=0,
        index=True,
        comment="Rent, sale price or desk price depending on the flow"
    )

    bedrooms: Mapped[Optional[int]] = mapped_column(
        Integer,
        nullable=True,
        index=True,
        comment="Bedroom count derived from the BHK type"
    )

    bathrooms: Mapped[Optional[int]] = mapped_column(
        Integer,
        nullable=True,
        comment="Number of bathrooms"
    )

    square_feet: Mapped[Optional[int]] = mapped_column(
        Integer,
        nullable=True,
        comment="Built-up or total area"
    )

    address: Mapped[Optional[str]] = mapped_column(
        String(500),
        nullable=True,
        comment="Display address"
    )

    city: Mapped[Optional[str]] = mapped_column(
        String(100),
        nullable=True,
        index=True,
        comment="City"
    )

    state: Mapped[Optional[str]] = mapped_column(
        String(100),
        nullable=True,
        index=True,
        comment="State"
    )

    zip_code: Mapped[Optional[str]] = mapped_column(
        String(20),
        nullable=True,
        comment="PIN code"
    )

    # Relationships
    owner: Mapped["User"] = relationship(
        "User",
        back_populates="properties",
        lazy="selectin"
    )

    images: Mapped[List["PropertyImage"]] = relationship(
        "PropertyImage",
        back_populates="property_rel",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="[PropertyImage.is_primary.desc(), PropertyImage.display_order.asc(), PropertyImage.created_at.asc()]"
    )

    def __repr__(self) -> str:
        return f"<Property(id={self.id}, code={self.code}, flow={self.flow_type}, status={self.status})>"

    @property
    def primary_image(self) -> Optional["PropertyImage"]:
        """Get the primary image, falling back to the first one."""
        for image in self.images:
            if image.is_primary:
                return image
        return self.images[0] if self.images else None

    @property
    def image_count(self) -> int:
        return len(self.images)

    @property
    def is_published(self) -> bool:
        return self.status == PropertyStatus.PUBLISHED

    @property
    def steps(self) -> Dict[str, Dict[str, Any]]:
        """Step data from the details blob."""
        return (self.property_details or {}).get("steps") or {}

    @property
    def rejection_reason(self) -> Optional[str]:
        return ((self.property_details or {}).get("meta") or {}).get("rejectionReason")

    def to_dict(self, include_owner: bool = False, include_images: bool = False) -> dict:
        """
        Convert property to dictionary.

        Args:
            include_owner: Whether to include owner information
            include_images: Whether to include image information

        Returns:
            Dictionary representation of property
        """
        result = {
            "id": str(self.id),
            "code": self.code,
            "flow_type": self.flow_type.value,
            "status": self.status.value,
            "title": self.title,
            "description": self.description,
            "price": float(self.price or 0),
            "bedrooms": self.bedrooms,
            "bathrooms": self.bathrooms,
            "square_feet": self.square_feet,
            "address": self.address,
            "city": self.city,
            "state": self.state,
            "zip_code": self.zip_code,
            "tags": list(self.tags or []),
            "property_details": self.property_details or {},
            "owner_id": str(self.owner_id),
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

        if include_owner and self.owner:
            result["owner"] = self.owner.to_dict()

        if include_images:
            result["images"] = [image.to_dict() for image in self.images]
            result["image_count"] = self.image_count
            result["primary_image"] = self.primary_image.to_dict() if self.primary_image else None

        return result


# Composite indexes for the common search patterns

status_flow_index = Index(
    'idx_properties_status_flow',
    Property.status,
    Property.flow_type,
    Property.created_at.desc()
)

city_price_index = Index(
    'idx_properties_city_price',
    Property.city,
    Property.price,
    Property.status
)

bedrooms_price_index = Index(
    'idx_properties_bedrooms_price',
    Property.bedrooms,
    Property.price,
    Property.status
)

owner_status_index = Index(
    'idx_properties_owner_status',
    Property.owner_id,
    Property.status,
    Property.updated_at.desc()
)
